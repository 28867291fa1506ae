"""Detection and ranking of coalitions that command a majority."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from itertools import combinations
import math
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from .compatibility import (
    DEFAULT_MODEL,
    CompatibilityModel,
    aggregate,
    pair_compatibility,
    red_line_violations,
)
from .data_loader import Party
from .errors import AnalysisCancelled, ComputationLimitExceeded, InvalidInputError
from .settings import DEFAULT_MAX_COALITION_SIZE, MAX_COMBINATIONS, MINORITY_SHARE


@dataclass(frozen=True)
class CoalitionCandidate:
    """A set of parties with its seats and compatibility score.

    ``member_ids`` is sorted, so two candidates with the same members compare
    equal. ``surplus`` is negative when the coalition falls short of a majority.
    """

    member_ids: Tuple[str, ...]
    total_seats: int
    compatibility_score: float
    is_viable: bool
    surplus: int
    is_minimal: bool
    red_line_violations: Tuple[str, ...] = ()

    @property
    def size(self) -> int:
        return len(self.member_ids)

    @property
    def is_blocked(self) -> bool:
        return bool(self.red_line_violations)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CoalitionAnalysis:
    """Everything one pass over an election result found."""

    total_seats: int
    majority: int
    viable: Tuple[CoalitionCandidate, ...]
    minority_options: Tuple[CoalitionCandidate, ...]
    blocked: Tuple[CoalitionCandidate, ...]
    single_party_majority: Optional[str]
    combinations_evaluated: int

    @property
    def most_compatible(self) -> Optional[CoalitionCandidate]:
        return self.viable[0] if self.viable else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def majority_threshold(total_seats: int) -> int:
    """Smallest seat count that is more than half of ``total_seats``."""

    if total_seats <= 0:
        raise InvalidInputError(f"Total seats must be positive, got {total_seats}")
    return total_seats // 2 + 1


def find_viable_coalitions(
    parties: Iterable[Party],
    total_seats: int,
    max_size: int = DEFAULT_MAX_COALITION_SIZE,
    *,
    model: Optional[CompatibilityModel] = None,
    min_size: int = 2,
    exclude_blocked: bool = False,
    max_combinations: int = MAX_COMBINATIONS,
    time_budget: Optional[float] = None,
    cancel: Any = None,
) -> List[CoalitionCandidate]:
    """Coalitions of ``min_size`` to ``max_size`` parties holding a strict majority.

    The list is ranked by compatibility, then fewer members, then the smaller
    surplus over the majority. A party that wins a majority on its own only
    shows up when ``min_size`` is 1. Parties without seats are ignored.
    """

    model = model or DEFAULT_MODEL
    seated = _prepare(parties, total_seats, model)
    _check_sizes(min_size, max_size)

    budget = _Budget(max_combinations, time_budget, cancel)
    found = _search(seated, total_seats, min_size, max_size, majority_threshold(total_seats), model, budget)
    viable = [candidate for candidate in found if candidate.is_viable]
    if exclude_blocked:
        viable = [candidate for candidate in viable if not candidate.is_blocked]

    logger.debug(
        "{} viable coalitions of up to {} parties ({} combinations evaluated)",
        len(viable),
        max_size,
        budget.evaluated,
    )
    return rank_coalitions(viable)


def analyze_coalitions(
    parties: Iterable[Party],
    total_seats: int,
    max_size: int = DEFAULT_MAX_COALITION_SIZE,
    *,
    model: Optional[CompatibilityModel] = None,
    minority_share: float = MINORITY_SHARE,
    max_combinations: int = MAX_COMBINATIONS,
    time_budget: Optional[float] = None,
    cancel: Any = None,
) -> CoalitionAnalysis:
    """Viable coalitions plus minority options, blocked coalitions and
    single-party majorities."""

    model = model or DEFAULT_MODEL
    seated = _prepare(parties, total_seats, model)
    _check_sizes(2, max_size)
    if not 0.0 < minority_share <= 1.0:
        raise InvalidInputError(f"Minority share must be in (0, 1], got {minority_share!r}")

    majority = majority_threshold(total_seats)
    target = min(majority, math.ceil(minority_share * total_seats))
    budget = _Budget(max_combinations, time_budget, cancel)
    found = _search(seated, total_seats, 2, max_size, target, model, budget)

    viable = rank_coalitions(candidate for candidate in found if candidate.is_viable)
    minority = rank_coalitions(candidate for candidate in found if not candidate.is_viable)
    single = next((party.id for party in seated if 2 * party.seats > total_seats), None)

    logger.info(
        "Coalition analysis: {} viable, {} minority options, {} combinations evaluated",
        len(viable),
        len(minority),
        budget.evaluated,
    )
    return CoalitionAnalysis(
        total_seats=total_seats,
        majority=majority,
        viable=tuple(viable),
        minority_options=tuple(minority),
        blocked=tuple(candidate for candidate in viable if candidate.is_blocked),
        single_party_majority=single,
        combinations_evaluated=budget.evaluated,
    )


def evaluate_coalition(
    member_ids: Sequence[str],
    parties: Iterable[Party],
    total_seats: int,
    model: Optional[CompatibilityModel] = None,
) -> CoalitionCandidate:
    """Score an explicit selection of parties, whether or not it is viable."""

    model = model or DEFAULT_MODEL
    parties = list(parties)
    _prepare(parties, total_seats, model)
    lookup = {party.id: party for party in parties}

    if not member_ids:
        raise InvalidInputError("A coalition needs at least one party")
    listed = set()
    for party_id in member_ids:
        if party_id not in lookup:
            raise InvalidInputError("Unknown party", party_id)
        if party_id in listed:
            raise InvalidInputError("Party listed twice in coalition", party_id)
        listed.add(party_id)

    members = [lookup[party_id] for party_id in member_ids]
    return _candidate(members, total_seats, _PairScores(model))


def compatible_additions(
    member_ids: Sequence[str],
    parties: Iterable[Party],
    total_seats: int,
    min_compatibility: float = 5.0,
    model: Optional[CompatibilityModel] = None,
) -> List[CoalitionCandidate]:
    """Coalitions formed by adding one more seated party to ``member_ids``
    that still score at least ``min_compatibility``."""

    model = model or DEFAULT_MODEL
    parties = list(parties)
    current = set(member_ids)
    additions = []
    for party in parties:
        if party.id in current or party.seats <= 0:
            continue
        candidate = evaluate_coalition(list(member_ids) + [party.id], parties, total_seats, model)
        if candidate.compatibility_score >= min_compatibility:
            additions.append(candidate)
    return rank_coalitions(additions)


def rank_coalitions(candidates: Iterable[CoalitionCandidate]) -> List[CoalitionCandidate]:
    """Sort by score (desc), member count, surplus and member ids."""

    return sorted(
        candidates,
        key=lambda candidate: (
            -candidate.compatibility_score,
            candidate.size,
            candidate.surplus,
            candidate.member_ids,
        ),
    )


class _Budget:
    """Counts evaluated combinations and enforces the caller's limits."""

    def __init__(self, limit: int, time_budget: Optional[float], cancel: Any):
        if limit <= 0:
            raise InvalidInputError(f"Combination limit must be positive, got {limit}")
        self.limit = limit
        self.time_budget = time_budget
        self.deadline = time.monotonic() + time_budget if time_budget is not None else None
        self.cancel = cancel
        self.evaluated = 0

    def tick(self) -> None:
        self.evaluated += 1
        if self.cancel is not None and self.cancel.is_set():
            raise AnalysisCancelled(self.evaluated)
        if self.evaluated > self.limit:
            raise ComputationLimitExceeded(
                f"Coalition enumeration exceeded {self.limit} combinations",
                limit=self.limit,
                evaluated=self.evaluated,
            )
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise ComputationLimitExceeded(
                f"Coalition enumeration exceeded its time budget of {self.time_budget}s",
                limit=self.time_budget,
                evaluated=self.evaluated,
            )


class _PairScores:
    """Pair compatibility cache for one analysis."""

    def __init__(self, model: CompatibilityModel):
        self.model = model
        self._scores: Dict[Tuple[str, str], float] = {}

    def pair(self, first: Party, second: Party) -> float:
        key = (first.id, second.id) if first.id < second.id else (second.id, first.id)
        if key not in self._scores:
            self._scores[key] = pair_compatibility(first, second, self.model)
        return self._scores[key]

    def coalition(self, members: Sequence[Party]) -> float:
        ordered = sorted(members, key=lambda party: party.id)
        scores = [self.pair(first, second) for first, second in combinations(ordered, 2)]
        return aggregate(scores, self.model.aggregation)


def _prepare(parties: Iterable[Party], total_seats: int, model: CompatibilityModel) -> List[Party]:
    """Validate the input and return the seated parties, largest first."""

    parties = list(parties)
    if isinstance(total_seats, bool) or not isinstance(total_seats, int) or total_seats <= 0:
        raise InvalidInputError(f"Total seats must be a positive integer, got {total_seats!r}")
    if not parties:
        raise InvalidInputError("The party list is empty")

    seen = set()
    for party in parties:
        if party.id in seen:
            raise InvalidInputError("Duplicate party id", party.id)
        seen.add(party.id)
        if party.seats < 0:
            raise InvalidInputError(f"Negative seat count {party.seats}", party.id)

    allocated = sum(party.seats for party in parties)
    if allocated != total_seats:
        raise InvalidInputError(f"Seat counts add up to {allocated}, expected {total_seats}")

    seated = sorted(
        (party for party in parties if party.seats > 0),
        key=lambda party: (-party.seats, party.id),
    )
    dimensions = len(seated[0].ideology)
    for party in seated:
        if not party.ideology:
            raise InvalidInputError("Missing ideology vector", party.id)
        if len(party.ideology) != dimensions:
            raise InvalidInputError(
                f"Ideology vector has {len(party.ideology)} dimensions, expected {dimensions}",
                party.id,
            )
    model.normalised_weights(dimensions)
    return seated


def _check_sizes(min_size: int, max_size: int) -> None:
    if min_size < 1:
        raise InvalidInputError(f"Minimum coalition size must be at least 1, got {min_size}")
    if max_size < min_size:
        raise InvalidInputError(f"Maximum coalition size {max_size} is below the minimum {min_size}")


def _search(
    seated: Sequence[Party],
    total_seats: int,
    min_size: int,
    max_size: int,
    target: int,
    model: CompatibilityModel,
    budget: _Budget,
) -> List[CoalitionCandidate]:
    """Candidates of ``min_size``..``max_size`` parties with at least ``target`` seats."""

    scores = _PairScores(model)
    candidates: List[CoalitionCandidate] = []
    seen: set[Tuple[str, ...]] = set()
    for members in _enumerate(seated, min_size, max_size, target, budget):
        candidate = _candidate(members, total_seats, scores)
        if candidate.member_ids in seen:
            continue
        seen.add(candidate.member_ids)
        candidates.append(candidate)
    return candidates


def _enumerate(
    seated: Sequence[Party], min_size: int, max_size: int, target: int, budget: _Budget
) -> List[Tuple[Party, ...]]:
    # ``seated`` is ordered by seats, largest first: the best a branch can still
    # do is to add the next parties in line, and once that falls short of
    # ``target`` every later sibling falls short as well.
    seats = [party.seats for party in seated]
    prefix = [0]
    for count in seats:
        prefix.append(prefix[-1] + count)
    found: List[Tuple[Party, ...]] = []

    def extend(start: int, chosen: Tuple[Party, ...], chosen_seats: int) -> None:
        room = max_size - len(chosen)
        for index in range(start, len(seated)):
            best = chosen_seats + prefix[min(len(seated), index + room)] - prefix[index]
            if best < target:
                break
            budget.tick()
            members = chosen + (seated[index],)
            members_seats = chosen_seats + seats[index]
            if len(members) >= min_size and members_seats >= target:
                found.append(members)
            if len(members) < max_size:
                extend(index + 1, members, members_seats)

    extend(0, (), 0)
    return found


def _candidate(members: Sequence[Party], total_seats: int, scores: _PairScores) -> CoalitionCandidate:
    seats = sum(party.seats for party in members)
    viable = 2 * seats > total_seats
    return CoalitionCandidate(
        member_ids=tuple(sorted(party.id for party in members)),
        total_seats=seats,
        compatibility_score=scores.coalition(members),
        is_viable=viable,
        surplus=seats - majority_threshold(total_seats),
        is_minimal=viable and all(2 * (seats - party.seats) <= total_seats for party in members),
        red_line_violations=red_line_violations(members),
    )


__all__ = [
    "CoalitionCandidate",
    "CoalitionAnalysis",
    "majority_threshold",
    "find_viable_coalitions",
    "analyze_coalitions",
    "evaluate_coalition",
    "compatible_additions",
    "rank_coalitions",
]
