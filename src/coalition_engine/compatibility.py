"""Ideological compatibility between parties.

A pair of parties scores from 0 (opposite ends of every axis) to 10 (identical
positions), based on the weighted Euclidean distance between their ideology
vectors. A coalition aggregates the scores of all its member pairs, using the
mean by default so that one badly matched pair does not sink an otherwise
close trio. :attr:`Aggregation.MIN` scores a coalition by its weakest pair
instead.

Two optional adjustments apply per pair before clamping: a bonus from a table of
historical partnerships (values in [-1, 1]) and a penalty when one or both
parties have ruled the other out.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from itertools import combinations
import math
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .data_loader import Party
from .errors import InvalidInputError
from .settings import IDEOLOGY_MAX_DISTANCE

MAX_SCORE = 10.0
MIN_SCORE = 0.0


class Aggregation(str, Enum):
    MEAN = "mean"
    MIN = "min"


@dataclass(frozen=True)
class CompatibilityModel:
    """How pair scores are computed and combined."""

    weights: Optional[Tuple[float, ...]] = None
    max_distance: float = IDEOLOGY_MAX_DISTANCE
    aggregation: Aggregation = Aggregation.MEAN
    partnerships: Dict[FrozenSet[str], float] = field(default_factory=dict)
    partnership_weight: float = 0.0
    red_line_weight: float = 0.0

    def normalised_weights(self, dimensions: int) -> Tuple[float, ...]:
        if dimensions <= 0:
            raise InvalidInputError("Ideology vectors need at least one dimension")
        if self.weights is None:
            return (1.0 / dimensions,) * dimensions
        if len(self.weights) != dimensions:
            raise InvalidInputError(
                f"Model has {len(self.weights)} weights for {dimensions} ideology dimensions"
            )
        if any(weight < 0 for weight in self.weights) or sum(self.weights) <= 0:
            raise InvalidInputError(f"Weights must be non-negative and not all zero: {self.weights}")
        total = math.fsum(self.weights)
        return tuple(weight / total for weight in self.weights)

    def bonus(self, first_id: str, second_id: str) -> float:
        return self.partnerships.get(frozenset((first_id, second_id)), 0.0)


DEFAULT_MODEL = CompatibilityModel()


def partnership_table(pairs: Iterable[Tuple[str, str, float]]) -> Dict[FrozenSet[str], float]:
    """Build a partnership table from ``(party, party, bonus)`` rows."""

    table: Dict[FrozenSet[str], float] = {}
    for first, second, bonus in pairs:
        if not -1.0 <= bonus <= 1.0:
            raise InvalidInputError(f"Partnership bonus {bonus} for {first}-{second} is outside [-1, 1]")
        table[frozenset((first, second))] = bonus
    return table


def weighted_distance(
    first: Sequence[float], second: Sequence[float], weights: Sequence[float]
) -> float:
    return math.sqrt(math.fsum(w * (a - b) ** 2 for a, b, w in zip(first, second, weights)))


def pair_compatibility(
    first: Party, second: Party, model: Optional[CompatibilityModel] = None
) -> float:
    """Compatibility of two parties on the 0-10 scale."""

    model = model or DEFAULT_MODEL
    for party in (first, second):
        if not party.ideology:
            raise InvalidInputError("Missing ideology vector", party.id)
    if len(first.ideology) != len(second.ideology):
        raise InvalidInputError(
            f"Ideology vector has {len(second.ideology)} dimensions, expected {len(first.ideology)}",
            second.id,
        )

    weights = model.normalised_weights(len(first.ideology))
    distance = weighted_distance(first.ideology, second.ideology, weights)
    score = MAX_SCORE * (1.0 - distance / model.max_distance)
    score += MAX_SCORE * model.partnership_weight * model.bonus(first.id, second.id)
    score -= MAX_SCORE * model.red_line_weight * _red_line_share(first, second)
    return _clamp(score)


def aggregate(scores: Sequence[float], aggregation: Aggregation = Aggregation.MEAN) -> float:
    # A single party has no pairs and is fully compatible with itself.
    if not scores:
        return MAX_SCORE
    if aggregation == Aggregation.MIN:
        return min(scores)
    return _clamp(math.fsum(scores) / len(scores))


def coalition_compatibility(
    parties: Sequence[Party], model: Optional[CompatibilityModel] = None
) -> float:
    """Aggregate pair score of a set of parties."""

    model = model or DEFAULT_MODEL
    ordered = sorted(parties, key=lambda party: party.id)
    scores = [pair_compatibility(first, second, model) for first, second in combinations(ordered, 2)]
    return aggregate(scores, model.aggregation)


def red_line_violations(parties: Sequence[Party]) -> Tuple[str, ...]:
    """``"A excludes B"`` for every member that ruled out another member."""

    members = {party.id for party in parties}
    violations: List[str] = []
    for party in sorted(parties, key=lambda party: party.id):
        for other in sorted(set(party.excluded_partners)):
            if other in members and other != party.id:
                violations.append(f"{party.id} excludes {other}")
    return tuple(violations)


def _red_line_share(first: Party, second: Party) -> float:
    refusals = (second.id in first.excluded_partners) + (first.id in second.excluded_partners)
    return refusals / 2


def _clamp(score: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, score))


__all__ = [
    "Aggregation",
    "CompatibilityModel",
    "DEFAULT_MODEL",
    "MAX_SCORE",
    "MIN_SCORE",
    "partnership_table",
    "weighted_distance",
    "pair_compatibility",
    "aggregate",
    "coalition_compatibility",
    "red_line_violations",
]
