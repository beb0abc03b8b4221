"""
Unit tests for rebuild token sequencing (gpx_heatmap.rebuild).
"""

from gpx_heatmap.rebuild import RebuildSequencer


class TestRebuildSequencer:
    """Tests for RebuildSequencer."""

    def test_issue_increments_per_key(self):
        sequencer = RebuildSequencer()
        first = sequencer.issue("a", 0)
        second = sequencer.issue("a", 0)
        assert (first.sequence, second.sequence) == (1, 2)
        assert sequencer.current("a", 0) == 2
        assert second.key == ("a", 0)

    def test_only_latest_ticket_is_current(self):
        sequencer = RebuildSequencer()
        older = sequencer.issue("a", 0)
        newer = sequencer.issue("a", 0)
        assert not sequencer.is_current(older)
        assert sequencer.is_current(newer)

    def test_keys_are_independent(self):
        sequencer = RebuildSequencer()
        seg0 = sequencer.issue("a", 0)
        seg1 = sequencer.issue("a", 1)
        other = sequencer.issue("b", 0)
        sequencer.issue("a", 1)
        assert sequencer.is_current(seg0)
        assert not sequencer.is_current(seg1)
        assert sequencer.is_current(other)

    def test_split_bump_invalidates_whole_session_only(self):
        sequencer = RebuildSequencer()
        seg0 = sequencer.issue("a", 0)
        seg1 = sequencer.issue("a", 1)
        other = sequencer.issue("b", 0)

        assert sequencer.bump_split("a") == 1
        assert not sequencer.is_current(seg0)
        assert not sequencer.is_current(seg1)
        assert sequencer.is_current(other)

        fresh = sequencer.issue("a", 0)
        assert fresh.split_sequence == 1
        assert sequencer.is_current(fresh)

    def test_reset_session(self):
        sequencer = RebuildSequencer()
        sequencer.issue("a", 0)
        sequencer.issue("a", 3)
        sequencer.bump_split("a")
        kept = sequencer.issue("b", 0)

        sequencer.reset_session("a")

        assert sequencer.current("a", 0) == 0
        assert sequencer.current("a", 3) == 0
        assert sequencer.current_split("a") == 0
        assert sequencer.is_current(kept)
