"""
Slicing session state machine.
"""

import logging
import math
from typing import Optional

from models.core import Slice, Idle, Active, SessionState
from services.interval_store import IntervalStore
from config.error_handling import SessionStateError, ValidationError

logger = logging.getLogger(__name__)


class SlicingSession:
    """
    Captures one in-progress slice definition over an interval store.

    The session is either ``Idle`` or ``Active(provisional_start)``. A failed
    commit keeps the session active with the same provisional start so the
    user can pick a different end point and retry.
    """

    def __init__(self, store: IntervalStore):
        self.store = store
        self._state: SessionState = Idle()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return isinstance(self._state, Active)

    def can_begin(self, current_time: float) -> bool:
        """Whether ``begin(current_time)`` would be accepted."""
        return (not self.is_active and math.isfinite(current_time)
                and self.store.query(current_time) is None)

    def begin(self, current_time: float) -> bool:
        """
        Start a slice at ``current_time``.

        Refused (returns False) while already active, or when the point is
        not finite or lies inside a committed slice.
        """
        if not self.can_begin(current_time):
            logger.debug(f"Refused to begin slicing at {current_time:.3f}s")
            return False

        self._state = Active(current_time)
        logger.info(f"Slicing started at {current_time:.3f}s")
        return True

    def commit(self, current_time: float) -> Slice:
        """
        Close the active slice at ``current_time`` and store it.

        Returns:
            The committed slice

        Raises:
            SessionStateError: If no slice is being defined
            ValidationError: If ``current_time`` is not a finite number
            SliceTooShortError: If the slice is too narrow; session stays active
            SliceOverlapError: If the slice overlaps another; session stays active
        """
        state = self._state
        if not isinstance(state, Active):
            raise SessionStateError("No slice in progress; start slicing first")
        if not math.isfinite(current_time):
            raise ValidationError(f"Invalid slice end time: {current_time}")

        start = state.provisional_start
        candidate = Slice(min(start, current_time), max(start, current_time))

        self.store.add(candidate)

        self._state = Idle()
        return candidate

    def cancel(self) -> bool:
        """Discard the in-progress slice. Returns False if nothing was active."""
        if not self.is_active:
            return False
        self._state = Idle()
        logger.info("Slicing cancelled")
        return True

    def reset(self) -> None:
        """Return to ``Idle`` unconditionally, e.g. when the source is replaced."""
        self._state = Idle()

    def remove_slice_at(self, point: float) -> Optional[Slice]:
        """Delete the committed slice containing ``point``; refused while active."""
        if self.is_active:
            logger.debug("Refused to delete a slice while slicing is in progress")
            return None
        return self.store.remove_containing(point)
