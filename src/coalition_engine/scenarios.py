"""What-if scenarios: joint lists and named coalitions."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from fractions import Fraction
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from .coalitions import CoalitionCandidate, evaluate_coalition
from .compatibility import CompatibilityModel
from .data_loader import Party, PartyVotes
from .dhondt import THRESHOLD_PRECISION, TieBreak, allocate, dhondt_allocation
from .errors import InvalidInputError

LOSS_TOLERANCE = 1e-4

# Coalitions discussed after the Tweede Kamer election of 22 November 2023.
DUTCH_2023_SCENARIOS: Dict[str, Tuple[str, ...]] = {
    "Current Government": ("PVV", "VVD", "NSC", "BBB"),
    "Purple Coalition": ("VVD", "GL-PvdA", "D66"),
    "Left Coalition": ("GL-PvdA", "D66", "Volt", "PvdD", "SP"),
    "Right Coalition": ("PVV", "VVD", "FvD", "JA21", "BBB"),
    "Center Coalition": ("VVD", "NSC", "D66", "CDA", "CU"),
    "Grand Coalition": ("PVV", "GL-PvdA", "VVD", "NSC"),
    "Minority Government": ("VVD", "D66", "NSC"),
}


@dataclass(frozen=True)
class MergerEffect:
    """Seat effect of several lists running as one joint list.

    ``indifference_loss`` is the share of the joint list's votes that could
    drift to the other lists before the merger stops winning extra seats.
    """

    label: str
    merged_ids: Tuple[str, ...]
    baseline_seats: int
    merged_seats: int
    seat_change: int
    indifference_loss: float
    lost_votes: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def merge_lists(
    parties: Iterable[Any], ids: Sequence[str], label: Optional[str] = None
) -> Tuple[List[PartyVotes], str, List[str]]:
    """Replace the lists in ``ids`` by one joint list holding their votes."""

    codes = set(ids)
    if len(codes) < 2:
        raise InvalidInputError("A joint list needs at least two lists")

    merged_votes = 0
    merged_ids: List[str] = []
    result: List[PartyVotes] = []
    for party in parties:
        if party.id in codes:
            merged_votes += party.votes
            merged_ids.append(party.id)
        else:
            result.append(PartyVotes(id=party.id, votes=party.votes))

    missing = sorted(codes - set(merged_ids))
    if missing:
        raise InvalidInputError("List not found", missing[0])

    merged_label = label or " + ".join(merged_ids)
    if any(party.id == merged_label for party in result):
        raise InvalidInputError("Joint list label clashes with an existing list", merged_label)
    result.append(PartyVotes(id=merged_label, votes=merged_votes))
    return result, merged_label, merged_ids


def merger_effect(
    parties: Iterable[Any],
    ids: Sequence[str],
    total_seats: int,
    threshold: float = 0.0,
    label: Optional[str] = None,
    tie_break: TieBreak = TieBreak.VOTES,
    seed: int = 0,
) -> MergerEffect:
    """Compare the separate lists in ``ids`` with the same lists run jointly.

    Every allocation, including each step of the indifference-loss search,
    uses the same ``tie_break`` and ``seed``.
    """

    parties = list(parties)
    separate = {
        result.id: result.seats for result in allocate(parties, total_seats, threshold, tie_break, seed)
    }
    merged_parties, merged_label, merged_ids = merge_lists(parties, ids, label)
    merged = {
        result.id: result.seats for result in allocate(merged_parties, total_seats, threshold, tie_break, seed)
    }

    baseline_seats = sum(separate.get(party_id, 0) for party_id in merged_ids)
    merged_seats = merged.get(merged_label, 0)
    loss = _indifference_loss_percentage(
        merged_parties, merged_label, total_seats, baseline_seats, merged_seats, threshold, tie_break, seed
    )
    merged_votes = _list_votes(merged_parties, merged_label)

    logger.debug(
        "Joint list {}: {} -> {} seats, indifference loss {:.2%}",
        merged_label,
        baseline_seats,
        merged_seats,
        loss,
    )
    return MergerEffect(
        label=merged_label,
        merged_ids=tuple(merged_ids),
        baseline_seats=baseline_seats,
        merged_seats=merged_seats,
        seat_change=merged_seats - baseline_seats,
        indifference_loss=loss,
        lost_votes=round(merged_votes * loss),
    )


def evaluate_scenarios(
    scenarios: Mapping[str, Sequence[str]],
    parties: Iterable[Party],
    total_seats: int,
    model: Optional[CompatibilityModel] = None,
) -> Dict[str, CoalitionCandidate]:
    """Score named coalitions, e.g. ``{"Purple": ["VVD", "GL-PvdA", "D66"]}``.

    Pass :data:`DUTCH_2023_SCENARIOS` to score the 2023 formation options.
    """

    parties = list(parties)
    return {
        name: evaluate_coalition(member_ids, parties, total_seats, model)
        for name, member_ids in scenarios.items()
    }


def _indifference_loss_percentage(
    merged_parties: Sequence[PartyVotes],
    merged_label: str,
    seats: int,
    baseline_seats: int,
    current_merged_seats: int,
    threshold: float = 0.0,
    tie_break: TieBreak = TieBreak.VOTES,
    seed: int = 0,
) -> float:
    if current_merged_seats <= baseline_seats:
        return 0.0

    low = 0.0
    high = 1.0
    for _ in range(60):
        mid = (low + high) / 2
        scenario = _eligible(_votes_with_loss(merged_parties, merged_label, mid), threshold)
        allocation = dhondt_allocation(scenario, seats, tie_break, seed)
        seats_mid = allocation.get(merged_label, 0)
        if seats_mid > baseline_seats:
            low = mid
        else:
            high = mid
        if high - low <= LOSS_TOLERANCE:
            break
    return high


def _votes_with_loss(
    merged_parties: Sequence[PartyVotes], merged_label: str, loss_fraction: float
) -> List[PartyVotes]:
    if not 0.0 <= loss_fraction <= 1.0:
        raise InvalidInputError(f"Loss fraction must be between 0 and 1, got {loss_fraction}")

    merged_votes = None
    others: List[PartyVotes] = []
    other_votes_total = 0.0
    for party in merged_parties:
        if party.id == merged_label:
            merged_votes = float(party.votes)
        else:
            others.append(party)
            other_votes_total += float(party.votes)

    if merged_votes is None:
        raise InvalidInputError("Joint list not found in scenario", merged_label)

    loss_votes = merged_votes * loss_fraction
    scenario: List[PartyVotes] = [PartyVotes(id=merged_label, votes=merged_votes - loss_votes)]

    if loss_votes <= 0 or other_votes_total <= 0:
        scenario.extend(PartyVotes(id=party.id, votes=float(party.votes)) for party in others)
        return scenario

    for party in others:
        share = float(party.votes) / other_votes_total
        scenario.append(PartyVotes(id=party.id, votes=float(party.votes) + loss_votes * share))
    return scenario


def _eligible(entries: Sequence[PartyVotes], threshold: float) -> List[PartyVotes]:
    if threshold <= 0:
        return list(entries)
    total = sum(entry.votes for entry in entries)
    minimum = Fraction(threshold).limit_denominator(THRESHOLD_PRECISION) * total
    return [entry for entry in entries if entry.votes >= minimum]


def _list_votes(parties: Sequence[PartyVotes], party_id: str) -> float:
    for party in parties:
        if party.id == party_id:
            return float(party.votes)
    return 0.0


__all__ = [
    "DUTCH_2023_SCENARIOS",
    "MergerEffect",
    "merge_lists",
    "merger_effect",
    "evaluate_scenarios",
]
