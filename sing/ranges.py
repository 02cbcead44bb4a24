"""Inclusive integer ranges: merging, complement and difference."""

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class Range:
    """An inclusive range of integers from ``start`` to ``end``."""

    start: int
    end: int


def single(index: int) -> Range:
    """Return a range holding exactly ``index``."""
    return Range(index, index)


def merge(ranges: Iterable[Range]) -> list[Range]:
    """Merge overlapping or adjacent ranges into a sorted list."""
    ordered = sorted(ranges, key=lambda r: r.start)
    if not ordered:
        return []
    merged = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start > last.end + 1:
            merged.append(current)
        elif current.end > last.end:
            merged[-1] = Range(last.start, current.end)
    return merged


def revert(start: int, end: int, ranges: Iterable[Range]) -> list[Range]:
    """Return the parts of ``start..end`` not covered by ``ranges``.

    An empty ``ranges`` yields an empty result.
    """
    merged = merge(ranges)
    if not merged:
        return []
    reverted = []
    if merged[0].start > start:
        reverted.append(Range(start, merged[0].start - 1))
    range_end = merged[0].end
    for current in merged[1:]:
        if current.start > range_end + 1:
            reverted.append(Range(range_end + 1, current.start - 1))
        range_end = current.end
    if end > range_end:
        reverted.append(Range(range_end + 1, end))
    return reverted


def exclude(ranges: Iterable[Range], target_ranges: Iterable[Range]) -> list[Range]:
    """Return ``ranges`` with every value covered by ``target_ranges`` removed."""
    remaining = merge(ranges)
    if not remaining:
        return []
    targets = merge(target_ranges)
    if not targets:
        return remaining
    result = []
    for current in remaining:
        index = current.start
        for target in targets:
            if target.end < index:
                continue
            if target.start > current.end:
                break
            if target.start > index:
                result.append(Range(index, target.start - 1))
            index = max(index, target.end + 1)
            if index > current.end:
                break
        if index <= current.end:
            result.append(Range(index, current.end))
    return merge(result)