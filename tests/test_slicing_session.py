"""
Unit tests for SlicingSession state machine.
"""

import pytest

from services.interval_store import IntervalStore
from services.slicing_session import SlicingSession
from models.core import Slice, Idle, Active
from config.error_handling import (
    SliceTooShortError, SliceOverlapError, SessionStateError, ValidationError
)


class TestSlicingSession:
    """Test cases for SlicingSession class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = IntervalStore()
        self.session = SlicingSession(self.store)

    def test_initial_state_idle(self):
        """Test a new session starts idle."""
        assert self.session.state == Idle()
        assert self.session.is_active is False

    def test_begin_and_commit(self):
        """Test begin then commit stores exactly one slice and returns to idle."""
        assert self.session.begin(5.0) is True
        assert self.session.state == Active(5.0)

        committed = self.session.commit(9.0)

        assert committed == Slice(5.0, 9.0)
        assert self.store.all() == [Slice(5.0, 9.0)]
        assert self.session.state == Idle()

    def test_begin_inside_existing_slice_refused(self):
        """Test begin is refused inside a committed slice."""
        self.store.add(Slice(2.0, 5.0))

        assert self.session.begin(4.0) is False
        assert self.session.state == Idle()

    @pytest.mark.parametrize("point", [2.0, 3.5, 5.0])
    def test_begin_refused_whenever_query_hits(self, point):
        """Test begin is refused at every point inside a slice, endpoints included."""
        self.store.add(Slice(2.0, 5.0))

        assert self.store.query(point) is not None
        assert self.session.begin(point) is False

    @pytest.mark.parametrize("point", [0.0, 1.999, 5.001, 100.0])
    def test_begin_accepted_outside_slices(self, point):
        """Test begin succeeds wherever query finds nothing."""
        self.store.add(Slice(2.0, 5.0))

        assert self.session.begin(point) is True
        assert self.session.state == Active(point)

    def test_begin_while_active_refused(self):
        """Test a second begin keeps the first provisional start."""
        self.session.begin(1.0)

        assert self.session.begin(20.0) is False
        assert self.session.state == Active(1.0)

    def test_can_begin(self):
        """Test can_begin mirrors begin's acceptance."""
        self.store.add(Slice(2.0, 5.0))

        assert self.session.can_begin(1.0) is True
        assert self.session.can_begin(3.0) is False

        self.session.begin(1.0)
        assert self.session.can_begin(10.0) is False

    def test_commit_too_short_keeps_session_active(self):
        """Test a narrow commit fails and leaves the session active."""
        self.store.add(Slice(2.0, 5.0))
        self.session.begin(6.0)

        with pytest.raises(SliceTooShortError):
            self.session.commit(6.5)

        assert self.session.state == Active(6.0)
        assert self.store.all() == [Slice(2.0, 5.0)]

    def test_commit_overlap_keeps_store_and_start(self):
        """Test an overlapping commit changes neither the store nor the provisional start."""
        self.store.add(Slice(10.0, 15.0))
        self.session.begin(6.0)

        with pytest.raises(SliceOverlapError):
            self.session.commit(12.0)

        assert self.session.state == Active(6.0)
        assert self.store.all() == [Slice(10.0, 15.0)]

    def test_commit_retry_after_failure(self):
        """Test the user can retry with a different end point after a failure."""
        self.session.begin(6.0)
        with pytest.raises(SliceTooShortError):
            self.session.commit(7.0)

        committed = self.session.commit(8.0)

        assert committed == Slice(6.0, 8.0)
        assert self.session.state == Idle()

    def test_commit_backwards_normalizes(self):
        """Test an end before the start produces an ordered slice."""
        self.session.begin(9.0)

        committed = self.session.commit(5.0)

        assert committed == Slice(5.0, 9.0)

    def test_commit_while_idle(self):
        """Test commit without begin is a state error."""
        with pytest.raises(SessionStateError):
            self.session.commit(5.0)

        assert len(self.store) == 0

    @pytest.mark.parametrize("point", [float('nan'), float('inf'), float('-inf')])
    def test_begin_at_non_finite_time_refused(self, point):
        """Test slicing cannot start at a time that is not a number."""
        assert self.session.begin(point) is False
        assert self.session.state == Idle()

    def test_commit_at_non_finite_time_keeps_session_active(self):
        """Test an undefined end time is rejected without touching the store."""
        self.session.begin(3.0)

        with pytest.raises(ValidationError):
            self.session.commit(float('nan'))

        assert self.session.state == Active(3.0)
        assert len(self.store) == 0

        self.session.commit(5.0)
        assert self.store.all() == [Slice(3.0, 5.0)]

    def test_cancel(self):
        """Test cancel discards the in-progress slice."""
        self.session.begin(3.0)

        assert self.session.cancel() is True
        assert self.session.state == Idle()
        assert len(self.store) == 0

    def test_cancel_while_idle(self):
        """Test cancel with nothing in progress."""
        assert self.session.cancel() is False

    def test_reset(self):
        """Test reset always returns to idle."""
        self.session.begin(3.0)

        self.session.reset()

        assert self.session.state == Idle()

    def test_remove_slice_at(self):
        """Test deleting the slice under a point."""
        self.store.add(Slice(2.0, 5.0))

        assert self.session.remove_slice_at(3.0) == Slice(2.0, 5.0)
        assert len(self.store) == 0

    def test_remove_slice_at_refused_while_active(self):
        """Test deletion is refused while a slice is being defined."""
        self.store.add(Slice(2.0, 5.0))
        self.session.begin(10.0)

        assert self.session.remove_slice_at(3.0) is None
        assert self.store.all() == [Slice(2.0, 5.0)]
        assert self.session.state == Active(10.0)
