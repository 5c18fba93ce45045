"""Season tags used to scope the guest visit quota."""

from __future__ import annotations

import datetime as dt

from .errors import InvalidDate

# Inclusive calendar months counted as the summer season.
SUMMER_MONTHS = (5, 9)


def _as_date(value: dt.date | dt.datetime | str) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise InvalidDate(f"Invalid date: {value!r}") from exc
    raise InvalidDate(f"Invalid date: {value!r}")


def season_of(
    value: dt.date | dt.datetime | str,
    summer_months: tuple[int, int] = SUMMER_MONTHS,
) -> str:
    """Return ``S<year>`` for dates inside the summer window, ``W<year>`` otherwise."""

    day = _as_date(value)
    first, last = summer_months
    prefix = "S" if first <= day.month <= last else "W"
    return f"{prefix}{day.year}"


def current_season(
    now: dt.datetime | None = None,
    summer_months: tuple[int, int] = SUMMER_MONTHS,
) -> str:
    return season_of(now or dt.datetime.now(), summer_months)
