"""Fixed half-hour slot grid for a professional's working day.

The grid is a pure function of configuration and is the same for every date,
so callers may treat ``SLOT_GRID`` as a constant lookup table.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import ConfigurationError


@dataclass(frozen=True)
class Slot:
    start: time
    end: time


def parse_clock(value: str) -> time:
    try:
        return datetime.strptime(value.strip(), '%H:%M').time()
    except ValueError as exc:
        raise ConfigurationError(f'Invalid time of day {value!r}, expected HH:MM.') from exc


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def _clock(total_minutes: int) -> time:
    return time(total_minutes // 60, total_minutes % 60)


def build_slot_grid(first_start: time, last_start: time, granularity_minutes: int) -> tuple[Slot, ...]:
    """Return every slot whose start lies in ``[first_start, last_start]``.

    Each slot lasts ``granularity_minutes``. Raises ``ConfigurationError``
    instead of truncating when the range is not an exact multiple of the
    granularity.
    """
    if granularity_minutes <= 0:
        raise ConfigurationError('Slot granularity must be a positive number of minutes.')

    first = _minutes(first_start)
    last = _minutes(last_start)

    if last < first:
        raise ConfigurationError('Last slot start must not be earlier than the first slot start.')
    if (last - first) % granularity_minutes != 0:
        raise ConfigurationError(
            f'Slot granularity of {granularity_minutes} minutes does not evenly divide '
            f'{first_start:%H:%M}-{last_start:%H:%M}.'
        )
    if first % granularity_minutes != 0:
        raise ConfigurationError(f'First slot start {first_start:%H:%M} is not on a slot boundary.')
    if last + granularity_minutes >= 24 * 60:
        raise ConfigurationError('The last slot must end before midnight.')

    return tuple(
        Slot(start=_clock(minute), end=_clock(minute + granularity_minutes))
        for minute in range(first, last + 1, granularity_minutes)
    )


def build_configured_grid() -> tuple[Slot, ...]:
    return build_slot_grid(
        parse_clock(config.FIRST_SLOT_START),
        parse_clock(config.LAST_SLOT_START),
        config.SLOT_MINUTES,
    )


SLOT_GRID = build_configured_grid()


def is_slot_boundary(value: time, granularity_minutes: int = config.SLOT_MINUTES) -> bool:
    return value.second == 0 and value.microsecond == 0 and _minutes(value) % granularity_minutes == 0


def slot_end_for(start: time, granularity_minutes: int = config.SLOT_MINUTES) -> time:
    return (datetime.combine(date.min, start) + timedelta(minutes=granularity_minutes)).time()


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    """Half-open interval test: ``[start1, end1)`` intersects ``[start2, end2)``."""
    return start1 < end2 and start2 < end1


def iter_dates(start_date: date, end_date: date) -> Iterator[date]:
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)
