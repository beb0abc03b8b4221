"""
Activity Classification for GPX Heatmap Analysis

This module labels a track with an activity type by scoring its statistics
against weighted heuristic profiles. The profiles are plain data in
constants.ACTIVITY_PROFILES; classify_activity() is the stable interface and
accepts a replacement table.

Each profile accumulates the weight of every rule whose metric falls inside
the rule's band. The highest score wins, ties go to the earlier entry of the
priority list, and an all-zero result falls back to endurance running. When a
metric that earned the winner points sits close to one of its rule's bounds,
an advisory note is attached. The note never changes the label.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
from . import constants
from . import utils
from .metrics import TrackStatistics


class ActivityType(str, Enum):
    COMPACT_FIELD = "compact_field"
    ENDURANCE_RUN = "endurance_run"
    CYCLING = "cycling"

    @property
    def display_name(self) -> str:
        return {
            ActivityType.COMPACT_FIELD: "Field sport",
            ActivityType.ENDURANCE_RUN: "Distance run",
            ActivityType.CYCLING: "Cycling",
        }[self]


@dataclass(frozen=True)
class ScoreRule:
    """One threshold check: metric within [lower, upper] earns weight points."""
    metric: str
    lower: Optional[float]
    upper: Optional[float]
    weight: int

    def matches(self, value: float) -> bool:
        if not utils.is_finite(value):
            return False
        if self.lower is not None and value < self.lower:
            return False
        if self.upper is not None and value > self.upper:
            return False
        return True

    def near_bounds(self, value: float, margin: float) -> List[float]:
        """Bounds of this rule that value lies within margin (relative) of."""
        close = []
        for bound in (self.lower, self.upper):
            if bound is None or bound == 0:
                continue
            if abs(value - bound) <= margin * abs(bound):
                close.append(bound)
        return close


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one set of statistics."""
    label: ActivityType
    note: Optional[str] = None
    scores: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "label": self.label.value,
            "display_name": self.label.display_name,
            "note": self.note,
            "scores": dict(self.scores),
        }


def build_profiles(table: Dict[str, Sequence[Tuple]] = None) -> Dict[ActivityType, List[ScoreRule]]:
    """
    Turn a raw profile table into typed rules.

    Args:
        table: Mapping of activity name to (metric, lower, upper, weight)
               tuples. Defaults to constants.ACTIVITY_PROFILES.

    Returns:
        Mapping of ActivityType to its rules.
    """
    table = constants.ACTIVITY_PROFILES if table is None else table
    return {
        ActivityType(name): [ScoreRule(*row) for row in rows]
        for name, rows in table.items()
    }


DEFAULT_PROFILES = build_profiles()


def _metric_value(stats: TrackStatistics, metric: str) -> float:
    return getattr(stats, metric)


def score_profiles(stats: TrackStatistics,
                   profiles: Dict[ActivityType, List[ScoreRule]]) -> Dict[ActivityType, int]:
    """Sum matching rule weights for each profile."""
    return {
        activity: sum(rule.weight for rule in rules if rule.matches(_metric_value(stats, rule.metric)))
        for activity, rules in profiles.items()
    }


def _pick_winner(scores: Dict[ActivityType, int], priority: Sequence[str],
                 fallback: str) -> ActivityType:
    if not scores or max(scores.values()) <= 0:
        return ActivityType(fallback)
    best = max(scores.values())
    tied = [activity for activity, score in scores.items() if score == best]
    ranking = [ActivityType(name) for name in priority]
    tied.sort(key=lambda a: ranking.index(a) if a in ranking else len(ranking))
    return tied[0]


def _describe(metric: str, value: float, bound: float) -> str:
    name, unit = constants.METRIC_DESCRIPTIONS.get(metric, (metric, ""))
    unit = f" {unit}" if unit else ""
    return f"{name} {value:.2f}{unit} is close to the {bound:g}{unit} cutoff"


def advisory_note(stats: TrackStatistics, label: ActivityType,
                  profiles: Dict[ActivityType, List[ScoreRule]],
                  margin: float = constants.ADVISORY_MARGIN) -> Optional[str]:
    """
    Build a caveat when the winning label rests on borderline metrics.

    Only rules of the winning profile that actually contributed points are
    checked.

    Args:
        stats: Statistics that were classified.
        label: Winning activity.
        profiles: Profiles used for scoring.
        margin: Relative distance to a bound considered borderline.

    Returns:
        Caveat sentence, or None when nothing is borderline.
    """
    remarks = []
    for rule in profiles.get(label, []):
        value = _metric_value(stats, rule.metric)
        if not rule.matches(value):
            continue
        for bound in rule.near_bounds(value, margin):
            remarks.append(_describe(rule.metric, value, bound))

    if not remarks:
        return None
    return (f"Classified as {label.display_name.lower()}, but "
            + "; ".join(remarks) + ". The label may be borderline.")


def classify_activity(stats: TrackStatistics,
                      profiles: Dict[ActivityType, List[ScoreRule]] = None,
                      priority: Sequence[str] = None) -> Classification:
    """
    Label a track's activity type from its statistics.

    Args:
        stats: Statistics of the whole track.
        profiles: Scoring rules; defaults to DEFAULT_PROFILES.
        priority: Tie-break order, first wins; defaults to ACTIVITY_PRIORITY.

    Returns:
        Classification with label, optional advisory note, and raw scores.
    """
    profiles = DEFAULT_PROFILES if profiles is None else profiles
    priority = constants.ACTIVITY_PRIORITY if priority is None else priority

    scores = score_profiles(stats, profiles)
    label = _pick_winner(scores, priority, constants.FALLBACK_ACTIVITY)
    note = advisory_note(stats, label, profiles) if scores.get(label, 0) > 0 else None

    return Classification(
        label=label,
        note=note,
        scores={activity.value: score for activity, score in scores.items()},
    )
