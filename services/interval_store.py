"""
Interval store holding the committed slices of one timeline.
"""

import logging
from typing import Iterator, List, Optional

from models.core import Slice, MIN_SLICE_SECONDS
from config.error_handling import SliceTooShortError, SliceOverlapError

logger = logging.getLogger(__name__)


class IntervalStore:
    """
    Authoritative set of committed slices.

    Every stored slice is at least ``MIN_SLICE_SECONDS`` wide and no two
    stored slices overlap, where touching endpoints count as overlap.
    Membership is by value; slices are never edited in place.
    """

    def __init__(self):
        self._slices: List[Slice] = []

    def add(self, candidate: Slice) -> None:
        """
        Insert a candidate slice.

        Width is checked before overlap, and nothing is mutated on failure.

        Raises:
            SliceTooShortError: If the candidate is narrower than the minimum width
            SliceOverlapError: If the candidate overlaps a committed slice
        """
        if not candidate.duration >= MIN_SLICE_SECONDS:
            raise SliceTooShortError(width=candidate.duration)

        for existing in self._slices:
            if candidate.overlaps(existing):
                raise SliceOverlapError(conflicting_slice=existing)

        self._slices.append(candidate)
        logger.info(f"Added slice {candidate.start:.3f}s to {candidate.end:.3f}s")

    def remove_containing(self, point: float) -> Optional[Slice]:
        """Remove and return the slice containing ``point``, if any."""
        found = self.query(point)
        if found is None:
            return None

        self._slices.remove(found)
        logger.info(f"Removed slice {found.start:.3f}s to {found.end:.3f}s")
        return found

    def query(self, point: float) -> Optional[Slice]:
        """Return the slice containing ``point`` (closed interval), if any."""
        for slice_ in self._slices:
            if slice_.contains(point):
                return slice_
        return None

    def all(self) -> List[Slice]:
        """Committed slices in ascending start order."""
        return sorted(self._slices, key=lambda s: s.start)

    def clear(self) -> None:
        """Drop every committed slice."""
        if self._slices:
            logger.debug(f"Clearing {len(self._slices)} slices")
        self._slices.clear()

    def __len__(self) -> int:
        return len(self._slices)

    def __iter__(self) -> Iterator[Slice]:
        return iter(self.all())

    def __contains__(self, item: object) -> bool:
        return item in self._slices
