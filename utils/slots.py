"""
Slot grid helpers.

A slot is identified by its UTC start instant. All arithmetic is done on
epoch milliseconds so that alignment does not depend on tzinfo handling.
"""
from datetime import datetime, timedelta
from typing import Iterator

from utils.timeutils import as_utc, epoch_ms, from_epoch_ms

DAY_MS = 24 * 60 * 60 * 1000


def slot_key(dt: datetime) -> int:
    return epoch_ms(dt)


def is_aligned(value, slot_duration_ms: int) -> bool:
    if not isinstance(value, datetime) or slot_duration_ms <= 0:
        return False
    if value.microsecond % 1000:
        return False
    return epoch_ms(value) % slot_duration_ms == 0


def _round_up(ms: int, step: int) -> int:
    return -(-ms // step) * step


class SlotRange:
    """
    Ascending start instants of every slot fully inside business hours
    within [range_start, range_end] (both inclusive).

    Iterating is lazy and can be repeated; nothing is cached.
    """

    def __init__(self, range_start: datetime, range_end: datetime, slot_duration_ms: int,
                 business_start_offset_ms: int, business_end_offset_ms: int):
        self.range_start = as_utc(range_start)
        self.range_end = as_utc(range_end)
        self.slot_duration_ms = slot_duration_ms
        self.business_start_offset_ms = business_start_offset_ms
        self.business_end_offset_ms = business_end_offset_ms

    def __iter__(self) -> Iterator[datetime]:
        step = self.slot_duration_ms
        if step <= 0 or self.business_end_offset_ms <= self.business_start_offset_ms:
            return

        start_ms = epoch_ms(self.range_start)
        end_ms = epoch_ms(self.range_end)

        day = start_ms - start_ms % DAY_MS
        while day <= end_ms:
            window_start = max(day + self.business_start_offset_ms, start_ms)
            window_end = min(day + self.business_end_offset_ms, end_ms)

            t = _round_up(window_start, step)
            while t + step <= window_end:
                yield from_epoch_ms(t)
                t += step

            day += DAY_MS

    def __repr__(self):
        return (
            f"SlotRange({self.range_start.isoformat()}, {self.range_end.isoformat()}, "
            f"every {timedelta(milliseconds=self.slot_duration_ms)})"
        )


def generate_slots(range_start: datetime, range_end: datetime, slot_duration_ms: int,
                   business_start_offset_ms: int, business_end_offset_ms: int) -> SlotRange:
    # Range bounds (start <= end, max span) are checked by the caller
    return SlotRange(
        range_start,
        range_end,
        slot_duration_ms,
        business_start_offset_ms,
        business_end_offset_ms,
    )
