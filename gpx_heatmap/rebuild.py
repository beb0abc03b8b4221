"""
Rebuild Coordination for GPX Heatmap Analysis

This module hands out versioned tokens for asynchronous overlay rebuilds.
Every change that invalidates an overlay issues a new token for the affected
(session, segment) key before the rebuild starts; the result is committed
only if its token is still the latest when the rebuild finishes.

A second, per-session split counter covers changes to the segmentation
itself: bumping it invalidates every outstanding segment rebuild of that
session at once.

A RebuildSequencer is process-scoped state. Create one at startup and inject
it where rebuilds are scheduled; tests construct their own.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Hashable, Tuple

logger = logging.getLogger(__name__)

RebuildKey = Tuple[Hashable, int]


@dataclass(frozen=True)
class RebuildTicket:
    """Tokens captured when a rebuild is started."""
    session_id: Hashable
    segment_index: int
    sequence: int
    split_sequence: int

    @property
    def key(self) -> RebuildKey:
        return (self.session_id, self.segment_index)


class RebuildSequencer:
    """Monotonic counters per (session, segment) and per session split."""

    def __init__(self) -> None:
        self._sequences: Dict[RebuildKey, int] = {}
        self._splits: Dict[Hashable, int] = {}

    def current(self, session_id: Hashable, segment_index: int) -> int:
        return self._sequences.get((session_id, segment_index), 0)

    def current_split(self, session_id: Hashable) -> int:
        return self._splits.get(session_id, 0)

    def issue(self, session_id: Hashable, segment_index: int) -> RebuildTicket:
        """
        Invalidate outstanding rebuilds for one key and return a fresh ticket.

        Args:
            session_id: Owning session.
            segment_index: Segment being rebuilt.

        Returns:
            Ticket carrying the new sequence and the current split sequence.
        """
        key = (session_id, segment_index)
        sequence = self._sequences.get(key, 0) + 1
        self._sequences[key] = sequence
        logger.debug(f"Issued rebuild {sequence} for {key}")
        return RebuildTicket(
            session_id=session_id,
            segment_index=segment_index,
            sequence=sequence,
            split_sequence=self.current_split(session_id),
        )

    def bump_split(self, session_id: Hashable) -> int:
        """Invalidate every outstanding segment rebuild of a session."""
        split = self._splits.get(session_id, 0) + 1
        self._splits[session_id] = split
        return split

    def is_current(self, ticket: RebuildTicket) -> bool:
        """True if no newer rebuild or re-segmentation superseded the ticket."""
        return (self.current(ticket.session_id, ticket.segment_index) == ticket.sequence
                and self.current_split(ticket.session_id) == ticket.split_sequence)

    def reset_session(self, session_id: Hashable) -> None:
        """Forget every counter belonging to a session."""
        for key in [k for k in self._sequences if k[0] == session_id]:
            del self._sequences[key]
        self._splits.pop(session_id, None)
