"""Guest quota rules applied at the gate.

Two limits are enforced:

* a hard per-day cap on the number of guests a member may bring, and
* a soft seasonal visit quota per guest and member; guests over the quota are
  admitted but annotated and reported through the alert log.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Iterable

from .models import GUEST_LIMIT_ALERT, Alert, CheckIn, Guest
from .season import current_season, season_of
from .storage import AlertLog, MemberDirectory

logger = logging.getLogger(__name__)

MAX_GUESTS_PER_DAY = 5
# Visits allowed per guest, per member, per season before the guest is flagged.
GUEST_VISIT_LIMIT = 3


def _normalise(name: str) -> str:
    return name.strip().lower()


class GuestValidationEngine:
    def __init__(
        self,
        directory: MemberDirectory,
        alert_log: AlertLog,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.directory = directory
        self.alert_log = alert_log
        self.clock = clock

    def count_guest_visits(
        self,
        guest_name: str,
        profile_id: int,
        season: str,
        todays_checkins: Iterable[CheckIn],
    ) -> int:
        """Count this member's visits by ``guest_name`` in ``season``, today included."""

        target = _normalise(guest_name)
        count = 0
        member = self.directory.get_member(profile_id)
        if member is not None:
            for visit in member.guest_visits:
                if _normalise(visit.guest_name) == target and season_of(visit.visit_date) == season:
                    count += 1
        for checkin in todays_checkins:
            if checkin.profile_id != profile_id:
                continue
            count += sum(1 for guest in checkin.guests if _normalise(guest.name) == target)
        return count

    def is_over_visit_limit(
        self,
        guest: Guest,
        profile_id: int,
        todays_guest_names: Iterable[str],
        todays_checkins: Iterable[CheckIn],
        pending_alerts: list[Alert] | None = None,
    ) -> bool:
        """Flag ``guest`` when this visit goes past the seasonal quota.

        The guest is never rejected: its notes gain an ``ALERT`` marker and a
        ``GuestLimit`` alert is recorded. When ``pending_alerts`` is given the
        alert is appended there instead of being saved, so the caller can
        persist it together with the ledger.
        """

        name = _normalise(guest.name)
        if not name:
            return False
        if name in {_normalise(existing) for existing in todays_guest_names}:
            return False

        now = self.clock()
        visit_number = self.count_guest_visits(guest.name, profile_id, current_season(now), todays_checkins) + 1
        if visit_number > GUEST_VISIT_LIMIT:
            marker = f"ALERT: This is visit #{visit_number} (exceeds {GUEST_VISIT_LIMIT}-visit limit)"
            guest.notes = f"{guest.notes or ''} {marker}".strip()
            alert = self.alert_log.build_alert(
                alert_type=GUEST_LIMIT_ALERT,
                alert_message=(
                    f"Guest {guest.name} is on visit #{visit_number} for member {profile_id}, "
                    f"exceeding the {GUEST_VISIT_LIMIT}-visit seasonal limit"
                ),
                profile_id=profile_id,
                guest_name=guest.name,
                visit_date=now.date(),
            )
            if pending_alerts is None:
                self.alert_log.append_many([alert])
            else:
                pending_alerts.append(alert)
            logger.info("Guest %s flagged on visit #%s for member %s", guest.name, visit_number, profile_id)
            return True
        return False

    @staticmethod
    def validate_guest_count(current_count: int, proposed_count: int) -> dict:
        if current_count + proposed_count > MAX_GUESTS_PER_DAY:
            return {
                "valid": False,
                "message": (
                    f"Cannot add {proposed_count} more guests. Maximum {MAX_GUESTS_PER_DAY} guests "
                    f"allowed per member per day. This member already has {current_count} guest(s)."
                ),
            }
        return {"valid": True}

    def process_guests(
        self,
        guests: Iterable[Guest],
        profile_id: int,
        todays_checkins: list[CheckIn],
        existing_names: Iterable[str] = (),
    ) -> dict:
        processed = [guest for guest in guests if guest.name.strip()]
        seen = [_normalise(name) for name in existing_names]
        over_limit = []
        pending_alerts: list[Alert] = []
        for guest in processed:
            if self.is_over_visit_limit(guest, profile_id, seen, todays_checkins, pending_alerts):
                over_limit.append(guest)
            # A name repeated within one submission counts once.
            seen.append(_normalise(guest.name))
        return {
            "processed_guests": processed,
            "guests_over_limit": over_limit,
            "pending_alerts": pending_alerts,
        }

    def previous_guest_names(self, profile_id: int, todays_checkins: Iterable[CheckIn]) -> list[str]:
        """Quick-select suggestions: history first, then today's record."""

        names: dict[str, str] = {}
        member = self.directory.get_member(profile_id)
        if member is None:
            return []
        for visit in member.guest_visits:
            if visit.guest_name:
                names.setdefault(_normalise(visit.guest_name), visit.guest_name)
        for checkin in todays_checkins:
            if checkin.profile_id == profile_id:
                for guest in checkin.guests:
                    if guest.name:
                        names.setdefault(_normalise(guest.name), guest.name)
        return list(names.values())
