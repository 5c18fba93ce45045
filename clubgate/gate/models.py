"""Record types shared by the directory, ledger and alert log."""

from __future__ import annotations

import datetime as dt
import json
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from .errors import MalformedRecord

GUEST_LIMIT_ALERT = "GuestLimit"
MANUAL_GATE_ALERT = "ManualGateAlert"


class Vehicle(BaseModel):
    id: int
    license_plate: str


class AdditionalMember(BaseModel):
    id: int
    name: str


class GuestVisit(BaseModel):
    id: Optional[int] = None
    guest_name: str
    visit_date: dt.date
    notes: Optional[str] = None


class Member(BaseModel):
    profile_id: int
    user_id: Optional[int] = None
    username: Optional[str] = None
    email: Optional[str] = None
    verified: Optional[int] = None
    name: Optional[str] = None
    phone_primary: Optional[str] = None
    membership_type: Optional[str] = None
    visit_count: int = 0
    last_visit_date: Optional[str] = None
    vehicles: List[Vehicle] = Field(default_factory=list)
    additional_members: List[AdditionalMember] = Field(default_factory=list)
    guest_visits: List[GuestVisit] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or "Member"


class ApiMetadata(BaseModel):
    timestamp: Optional[str] = None
    date: Optional[str] = None
    member_count: int = 0
    total_guest_visits: int = 0


class MemberData(BaseModel):
    metadata: ApiMetadata = Field(default_factory=ApiMetadata)
    members: List[Member]


class ApiResponse(BaseModel):
    status: int
    message: str = ""
    data: MemberData
    api_version: Optional[str] = None
    timestamp: Optional[str] = None


class Guest(BaseModel):
    name: str
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()


class CheckIn(BaseModel):
    profile_id: int
    check_in_date: dt.date
    check_in_time: dt.time
    guests: List[Guest] = Field(default_factory=list)
    notes: Optional[str] = None


class Alert(BaseModel):
    profile_id: int = 0
    guest_name: str = ""
    visit_date: Optional[dt.date] = None
    season: Optional[str] = None
    type: str
    alert_message: str


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_record(model: Type[ModelT], payload: Any) -> ModelT:
    """Validate a decoded JSON object against ``model``."""

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise MalformedRecord(f"Malformed {model.__name__}: {exc}") from exc


def load_records(model: Type[ModelT], raw: str | None) -> list[ModelT]:
    """Decode a JSON array of ``model`` records; ``None`` means no records yet."""

    if not raw:
        return []
    try:
        return TypeAdapter(List[model]).validate_json(raw)
    except ValidationError as exc:
        raise MalformedRecord(f"Malformed {model.__name__} list: {exc}") from exc


def dump_records(records: list[BaseModel]) -> str:
    return json.dumps([record.model_dump(mode="json", exclude_none=True) for record in records])


def to_payload(record: BaseModel) -> dict:
    return record.model_dump(mode="json", exclude_none=True)
