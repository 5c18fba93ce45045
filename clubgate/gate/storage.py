"""Typed views over the key/value store: directory, ledger and alert log."""

from __future__ import annotations

import datetime as dt
import json
import logging
from typing import Callable, Iterable

from .database import (
    LAST_DOWNLOAD_DATE_KEY,
    MEMBER_DATA_KEY,
    TODAYS_ALERTS_KEY,
    TODAYS_CHECKINS_KEY,
    StorageAdapter,
)
from .errors import MalformedRecord, StorageError
from .models import (
    Alert,
    CheckIn,
    Guest,
    Member,
    MemberData,
    dump_records,
    load_records,
    parse_record,
)
from .season import current_season

logger = logging.getLogger(__name__)


class MemberDirectory:
    """Read-only cache of the last downloaded roster.

    The parsed snapshot is held in memory and swapped out as a whole by
    :meth:`replace`, so readers never see a partially written roster.
    """

    def __init__(self, storage: StorageAdapter) -> None:
        self.storage = storage
        self._snapshot: MemberData | None = None
        self._by_id: dict[int, Member] = {}

    def load(self) -> MemberData | None:
        raw = self.storage.get(MEMBER_DATA_KEY)
        if not raw:
            self._set_snapshot(None)
            return None
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise MalformedRecord("Stored member data is not valid JSON") from exc
        snapshot = parse_record(MemberData, payload)
        self._set_snapshot(snapshot)
        return snapshot

    def _set_snapshot(self, snapshot: MemberData | None) -> None:
        self._snapshot = snapshot
        self._by_id = {member.profile_id: member for member in snapshot.members} if snapshot else {}

    def snapshot(self) -> MemberData | None:
        if self._snapshot is None:
            self.load()
        return self._snapshot

    def replace(self, snapshot: MemberData) -> None:
        self.storage.set(MEMBER_DATA_KEY, snapshot.model_dump_json())
        self._set_snapshot(snapshot)

    def has_data(self) -> bool:
        try:
            return self.snapshot() is not None
        except StorageError:
            logger.exception("Error retrieving member data")
            return False

    def all_members(self) -> list[Member]:
        try:
            snapshot = self.snapshot()
        except StorageError:
            logger.exception("Error retrieving member data")
            return []
        return list(snapshot.members) if snapshot else []

    def get_member(self, profile_id: int) -> Member | None:
        if not self.all_members():
            return None
        return self._by_id.get(profile_id)

    def member_name(self, profile_id: int) -> str:
        member = self.get_member(profile_id)
        return member.display_name if member else "Member"

    def search(self, query: str) -> list[Member]:
        """Match name, phone, licence plates and household members."""

        needle = query.strip().lower()
        if not needle:
            return []
        results = []
        for member in self.all_members():
            haystack: list[str] = [member.name or "", member.phone_primary or ""]
            haystack.extend(vehicle.license_plate for vehicle in member.vehicles)
            haystack.extend(extra.name for extra in member.additional_members)
            if any(needle in value.lower() for value in haystack):
                results.append(member)
        return results

    def stamp_download(self, when: dt.datetime) -> None:
        self.storage.set(LAST_DOWNLOAD_DATE_KEY, when.isoformat())

    def last_download(self) -> dt.datetime | None:
        try:
            raw = self.storage.get(LAST_DOWNLOAD_DATE_KEY)
        except StorageError:
            logger.exception("Error checking download date")
            return None
        if not raw:
            return None
        try:
            return dt.datetime.fromisoformat(raw)
        except ValueError:
            logger.error("Stored download date is not ISO-8601: %r", raw)
            return None


class CheckInLedger:
    """Today's check-in records, one per member."""

    def __init__(self, storage: StorageAdapter) -> None:
        self.storage = storage

    def load(self) -> list[CheckIn]:
        return load_records(CheckIn, self.storage.get(TODAYS_CHECKINS_KEY))

    def todays_checkins(self) -> list[CheckIn]:
        try:
            return self.load()
        except StorageError:
            logger.exception("Error retrieving today's check-ins")
            return []

    def save(self, checkins: list[CheckIn]) -> None:
        self.storage.set(TODAYS_CHECKINS_KEY, dump_records(checkins))

    def append(self, checkins: list[CheckIn], checkin: CheckIn) -> None:
        """Add a new record to an already loaded ledger and persist it."""

        if find_checkin(checkins, checkin.profile_id) is not None:
            raise StorageError(f"Member {checkin.profile_id} already has a check-in today")
        self.save([*checkins, checkin])
        checkins.append(checkin)

    def append_guests(
        self, checkins: list[CheckIn], profile_id: int, guests: Iterable[Guest]
    ) -> CheckIn:
        existing = find_checkin(checkins, profile_id)
        if existing is None:
            raise StorageError(f"Member {profile_id} has no check-in today")
        existing.guests.extend(guests)
        self.save(checkins)
        return existing

    def clear(self) -> None:
        self.save([])


class AlertLog:
    """Append-only list of today's flagged events."""

    def __init__(
        self, storage: StorageAdapter, clock: Callable[[], dt.datetime] = dt.datetime.now
    ) -> None:
        self.storage = storage
        self.clock = clock

    def load(self) -> list[Alert]:
        return load_records(Alert, self.storage.get(TODAYS_ALERTS_KEY))

    def todays_alerts(self) -> list[Alert]:
        try:
            return self.load()
        except StorageError:
            logger.exception("Error retrieving today's alerts")
            return []

    def build_alert(
        self,
        *,
        alert_type: str,
        alert_message: str,
        profile_id: int | None = None,
        guest_name: str | None = None,
        visit_date: dt.date | None = None,
    ) -> Alert:
        """Return an alert stamped with today's date and season, without saving it."""

        now = self.clock()
        return Alert(
            profile_id=profile_id or 0,
            guest_name=guest_name or "",
            visit_date=visit_date or now.date(),
            season=current_season(now),
            type=alert_type,
            alert_message=alert_message,
        )

    def append_many(self, new_alerts: Iterable[Alert]) -> None:
        new_alerts = list(new_alerts)
        if not new_alerts:
            return
        alerts = self.load()
        alerts.extend(new_alerts)
        self.storage.set(TODAYS_ALERTS_KEY, dump_records(alerts))

    def create_alert(self, **fields) -> Alert:
        alert = self.build_alert(**fields)
        self.append_many([alert])
        return alert

    def clear(self) -> None:
        self.storage.set(TODAYS_ALERTS_KEY, dump_records([]))


def find_checkin(checkins: Iterable[CheckIn], profile_id: int) -> CheckIn | None:
    for checkin in checkins:
        if checkin.profile_id == profile_id:
            return checkin
    return None
