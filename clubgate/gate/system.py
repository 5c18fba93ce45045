"""Core orchestration logic for the club gate."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Iterable

from . import config
from .api import GateApiClient
from .database import SqliteStorage, StorageAdapter
from .errors import StorageError, SyncError, ValidationError
from .models import MANUAL_GATE_ALERT, Alert, ApiResponse, CheckIn, Guest, Member, to_payload
from .season import current_season
from .storage import AlertLog, CheckInLedger, MemberDirectory, find_checkin
from .validation import GUEST_VISIT_LIMIT, GuestValidationEngine

logger = logging.getLogger(__name__)

GuestInput = Guest | dict | str


def coerce_guests(guests: Iterable[GuestInput] | None) -> list[Guest]:
    """Turn names, dicts or :class:`Guest` objects into fresh ``Guest`` records."""

    result = []
    for guest in guests or ():
        if isinstance(guest, Guest):
            result.append(guest.model_copy())
        elif isinstance(guest, str):
            result.append(Guest(name=guest))
        elif isinstance(guest, dict) and isinstance(guest.get("name"), str):
            notes = guest.get("notes")
            result.append(Guest(name=guest["name"], notes=notes if isinstance(notes, str) else None))
        else:
            raise ValidationError(f"Invalid guest entry: {guest!r}")
    return result


def _result(success: bool, message: str, reason: str | None = None, over_limit: list[Guest] | None = None) -> dict:
    result: dict[str, Any] = {
        "success": success,
        "message": message,
        "reason": reason,
        "guests_over_limit": [guest.name for guest in over_limit or []],
    }
    if over_limit:
        names = ", ".join(guest.name for guest in over_limit)
        result["warning"] = (
            f"The following guests have exceeded the {GUEST_VISIT_LIMIT}-visit seasonal limit: {names}. "
            "This has been recorded and will be uploaded to the server."
        )
    return result


class CheckInService:
    """Applies check-in and add-guest transitions to today's ledger.

    Business-rule failures come back as ``{"success": False, ...}`` results
    with one of the ``reason`` codes below; only malformed caller input raises.
    """

    ALREADY_CHECKED_IN = "already_checked_in"
    NOT_CHECKED_IN = "not_checked_in"
    GUEST_LIMIT_EXCEEDED = "guest_limit_exceeded"
    STORAGE_ERROR = "storage_error"

    def __init__(
        self,
        directory: MemberDirectory,
        ledger: CheckInLedger,
        engine: GuestValidationEngine,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.directory = directory
        self.ledger = ledger
        self.engine = engine
        self.clock = clock

    def check_in(self, member: Member, guests: Iterable[GuestInput] | None = None) -> dict:
        return self._handle_guest_check_in(
            member.profile_id, member.display_name, coerce_guests(guests), adding_to_existing=False
        )

    def add_guests(self, profile_id: int, guests: Iterable[GuestInput]) -> dict:
        return self._handle_guest_check_in(
            profile_id, self.directory.member_name(profile_id), coerce_guests(guests), adding_to_existing=True
        )

    def _handle_guest_check_in(
        self,
        profile_id: int,
        member_name: str,
        guests: list[Guest],
        *,
        adding_to_existing: bool,
    ) -> dict:
        try:
            checkins = self.ledger.load()
            existing = find_checkin(checkins, profile_id)

            if not adding_to_existing and existing is not None:
                return _result(False, f"{member_name} is already checked in today.", self.ALREADY_CHECKED_IN)
            if adding_to_existing and existing is None:
                return _result(False, "Member is not checked in today", self.NOT_CHECKED_IN)

            current_count = len(existing.guests) if existing else 0
            proposed_count = sum(1 for guest in guests if guest.name.strip())
            validation = self.engine.validate_guest_count(current_count, proposed_count)
            if not validation["valid"]:
                return _result(False, validation.get("message") or "Too many guests", self.GUEST_LIMIT_EXCEEDED)

            existing_names = [guest.name for guest in existing.guests] if existing else []
            processed = self.engine.process_guests(guests, profile_id, checkins, existing_names)
            admitted = processed["processed_guests"]
            over_limit = processed["guests_over_limit"]
            previous = [record.model_copy(deep=True) for record in checkins]

            if not adding_to_existing:
                now = self.clock()
                checkin = CheckIn(
                    profile_id=profile_id,
                    check_in_date=now.date(),
                    check_in_time=now.time().replace(microsecond=0),
                    guests=admitted,
                )
                self.ledger.append(checkins, checkin)
                self._record_alerts(previous, processed["pending_alerts"])
                guest_text = ""
                if admitted:
                    guest_text = f" with {len(admitted)} guest{'s' if len(admitted) > 1 else ''}"
                logger.info("Checked in member %s with %s guest(s)", profile_id, len(admitted))
                return _result(True, f"{member_name} has been checked in{guest_text}!", over_limit=over_limit)

            self.ledger.append_guests(checkins, profile_id, admitted)
            self._record_alerts(previous, processed["pending_alerts"])
            logger.info("Added %s guest(s) to member %s", len(admitted), profile_id)
            return _result(
                True, f"Added {len(admitted)} guest(s) to {member_name}'s check-in.", over_limit=over_limit
            )
        except StorageError:
            logger.exception("Error processing check-in for member %s", profile_id)
            return _result(False, "Failed to process check-in data.", self.STORAGE_ERROR)

    def _record_alerts(self, previous: list[CheckIn], alerts: list[Alert]) -> None:
        """Save alerts raised by a ledger write; undo the write if they cannot be saved."""

        try:
            self.engine.alert_log.append_many(alerts)
        except StorageError:
            self.ledger.save(previous)
            raise


class SyncCoordinator:
    """Moves data between the device and the club server."""

    def __init__(
        self,
        directory: MemberDirectory,
        ledger: CheckInLedger,
        alert_log: AlertLog,
        client: GateApiClient | None = None,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.directory = directory
        self.ledger = ledger
        self.alert_log = alert_log
        self.client = client
        self.clock = clock

    def ingest_download(self, api_response: ApiResponse) -> int:
        """Replace the roster and start a fresh day; returns the member count."""

        try:
            self.ledger.clear()
            self.alert_log.clear()
            self.directory.replace(api_response.data)
            # Stamped last: a partial ingest must not look like today's roster.
            self.directory.stamp_download(self.clock())
        except StorageError:
            logger.exception("Error storing API data")
            raise
        logger.info("API data stored successfully (%s members)", len(api_response.data.members))
        return len(api_response.data.members)

    def was_downloaded_today(self) -> bool:
        last = self.directory.last_download()
        if last is None:
            return False
        return last.date() == self.clock().date()

    def prepare_upload(self, device_id: str) -> dict:
        return {
            "checkins": [to_payload(checkin) for checkin in self.ledger.todays_checkins()],
            "alerts": [to_payload(alert) for alert in self.alert_log.todays_alerts()],
            "device_id": device_id,
            "season": current_season(self.clock()),
        }

    def finalize_upload(self) -> None:
        self.ledger.clear()
        self.alert_log.clear()

    def _require_client(self) -> GateApiClient:
        if self.client is None:
            self.client = GateApiClient()
        return self.client

    def download(self) -> int:
        api_response = self._require_client().download()
        return self.ingest_download(api_response)

    def upload(self, device_id: str) -> dict:
        if not self.directory.has_data():
            raise SyncError("Please download data first before uploading")
        payload = self.prepare_upload(device_id)
        body = self._require_client().upload(payload)
        self.finalize_upload()

        data = body.get("data") or {}
        stats = data.get("checkins", data) if isinstance(data, dict) else {}
        logger.info("Uploaded %s check-ins and %s alerts", len(payload["checkins"]), len(payload["alerts"]))
        return {
            "total": stats.get("total", 0),
            "successful": stats.get("successful", 0),
            "failed": stats.get("failed", 0),
            "duplicates": stats.get("duplicates") or 0,
        }


class GateSystem:
    """High level façade that exposes the gate's caller-facing operations.

    One instance is the session for the life of the app; it owns the storage
    adapter and every component built on it.
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        *,
        storage: StorageAdapter | None = None,
        api_client: GateApiClient | None = None,
        device_id: str = config.GATE_DEVICE_ID,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.storage = storage if storage is not None else SqliteStorage(db_path)
        self.device_id = device_id
        self.clock = clock
        self.directory = MemberDirectory(self.storage)
        self.ledger = CheckInLedger(self.storage)
        self.alert_log = AlertLog(self.storage, clock)
        self.engine = GuestValidationEngine(self.directory, self.alert_log, clock)
        self.checkins = CheckInService(self.directory, self.ledger, self.engine, clock)
        self.sync = SyncCoordinator(self.directory, self.ledger, self.alert_log, api_client, clock)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    def load(self) -> bool:
        """Re-read the stored roster; returns whether one exists."""

        return self.directory.load() is not None

    def reset(self) -> None:
        self.ledger.clear()
        self.alert_log.clear()

    def status(self) -> dict:
        last = self.directory.last_download()
        return {
            "has_data": self.directory.has_data(),
            "downloaded_today": self.sync.was_downloaded_today(),
            "last_download": last.isoformat() if last else None,
            "member_count": len(self.directory.all_members()),
            "checkin_count": len(self.ledger.todays_checkins()),
            "alert_count": len(self.alert_log.todays_alerts()),
            "season": current_season(self.clock()),
        }

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------
    def list_members(self) -> list[Member]:
        return self.directory.all_members()

    def search_members(self, query: str) -> list[Member]:
        return self.directory.search(query)

    def get_member(self, profile_id: int) -> Member:
        member = self.directory.get_member(profile_id)
        if member is None:
            raise ValidationError("Member not found")
        return member

    def member_status(self, profile_id: int) -> dict:
        member = self.get_member(profile_id)
        checkin = find_checkin(self.ledger.todays_checkins(), profile_id)
        return {
            "member": member,
            "checked_in": checkin is not None,
            "guest_count": len(checkin.guests) if checkin else 0,
            "checkin": checkin,
        }

    def checked_in_ids(self) -> list[int]:
        return [checkin.profile_id for checkin in self.ledger.todays_checkins()]

    # ------------------------------------------------------------------
    # Check-ins & guests
    # ------------------------------------------------------------------
    def check_in_member(self, profile_id: int, guests: Iterable[GuestInput] | None = None) -> dict:
        return self.checkins.check_in(self.get_member(profile_id), guests)

    def add_guests(self, profile_id: int, guests: Iterable[GuestInput]) -> dict:
        return self.checkins.add_guests(profile_id, guests)

    def previous_guests(self, profile_id: int) -> list[str]:
        return self.engine.previous_guest_names(profile_id, self.ledger.todays_checkins())

    def todays_checkins(self) -> list[CheckIn]:
        return self.ledger.todays_checkins()

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------
    def create_manual_alert(self, *, message: str, profile_id: int | None = None) -> Alert:
        message = (message or "").strip()
        if not message:
            raise ValidationError("Alert message is required")
        if profile_id:
            self.get_member(profile_id)
        return self.alert_log.create_alert(
            alert_type=MANUAL_GATE_ALERT,
            alert_message=message,
            profile_id=profile_id,
        )

    def todays_alerts(self) -> list[Alert]:
        return self.alert_log.todays_alerts()

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------
    def ingest_download(self, api_response: ApiResponse) -> int:
        return self.sync.ingest_download(api_response)

    def download(self) -> int:
        return self.sync.download()

    def prepare_upload(self) -> dict:
        return self.sync.prepare_upload(self.device_id)

    def finalize_upload(self) -> None:
        self.sync.finalize_upload()

    def upload(self) -> dict:
        return self.sync.upload(self.device_id)

    def close(self) -> None:
        self.storage.close()
