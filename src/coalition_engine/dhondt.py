"""D'Hondt highest-averages seat allocation.

Every list receives the quotients ``votes / 1, votes / 2, ... votes / seats`` and
the ``seats`` largest quotients each win one seat, which is the same as handing
out seats one round at a time to the list with the largest
``votes / (seats_won + 1)``. Quotients are compared as exact fractions, so the
result does not depend on floating point rounding.

Ties between equal quotients are settled by a fixed rule. Electoral law draws
lots; :attr:`TieBreak.VOTES` (the default) gives the seat to the list with more
votes and then to the lower party id, :attr:`TieBreak.LOT` replays a drawing of
lots from a seeded random generator; the same seed (0 unless given) always
draws the same order, so repeated runs agree.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, replace
from enum import Enum
from fractions import Fraction
import numbers
import random
import time
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from loguru import logger

from .data_loader import ElectionResult, PartyVotes
from .errors import InvalidInputError

# Thresholds arrive as floats; 0.05 should mean exactly one twentieth.
THRESHOLD_PRECISION = 1_000_000


class TieBreak(str, Enum):
    VOTES = "votes"
    LOT = "lot"


@dataclass(frozen=True)
class DhondtSeat:
    """A quotient of the D'Hondt table."""

    party_id: str
    quotient: Fraction
    divisor: int
    raw_votes: float


@dataclass(frozen=True)
class PartySeats:
    """Allocation outcome for one party."""

    id: str
    votes: int
    seats: int
    vote_share: float
    seat_share: float
    eligible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SeatMismatch:
    party_id: str
    expected: int
    actual: int


def dhondt_allocation(
    parties: Iterable[Any],
    seats: int,
    tie_break: TieBreak = TieBreak.VOTES,
    seed: int = 0,
) -> Dict[str, int]:
    """Seats won by each list; lists without votes are left out of the result.

    ``parties`` holds any objects with ``id`` and ``votes`` attributes. Votes may
    be fractional. No validation happens here, see :func:`allocate`.
    """

    parties = list(parties)
    lot_rank = _lot_ranking(parties, seed) if tie_break == TieBreak.LOT else {}

    quotients: List[DhondtSeat] = []
    for party in parties:
        if party.votes <= 0:
            continue
        votes = _exact(party.votes)
        for divisor in range(1, seats + 1):
            quotients.append(
                DhondtSeat(
                    party_id=party.id,
                    quotient=votes / divisor,
                    divisor=divisor,
                    raw_votes=party.votes,
                )
            )

    if tie_break == TieBreak.LOT:
        quotients.sort(key=lambda seat: (-seat.quotient, lot_rank[seat.party_id]))
    else:
        quotients.sort(key=lambda seat: (-seat.quotient, -seat.raw_votes, seat.party_id))
    winners = quotients[:seats]
    counter: Counter[str] = Counter(seat.party_id for seat in winners)
    return dict(counter)


def allocate(
    parties: Iterable[Any] | Mapping[str, int],
    total_seats: int,
    threshold: float = 0.0,
    tie_break: TieBreak = TieBreak.VOTES,
    seed: int = 0,
) -> List[PartySeats]:
    """Distribute ``total_seats`` over ``parties`` and report every party.

    ``threshold`` is the minimum share of all valid votes a party needs to take
    part in the distribution. Results are ordered by seats, then votes, then id.
    """

    started = time.perf_counter()
    entries = _normalise(parties)
    _validate(entries, total_seats, threshold)

    total_votes = sum(entry.votes for entry in entries)
    minimum = Fraction(threshold).limit_denominator(THRESHOLD_PRECISION) * total_votes
    eligible = [entry for entry in entries if entry.votes >= minimum]
    excluded = [entry.id for entry in entries if entry.votes < minimum]
    if excluded:
        logger.info("Threshold of {:.2%} excludes {}", threshold, ", ".join(excluded))
    if not any(entry.votes > 0 for entry in eligible):
        raise InvalidInputError(f"No party reaches the threshold of {threshold:.2%}")

    allocation = dhondt_allocation(eligible, total_seats, tie_break, seed)
    eligible_ids = {entry.id for entry in eligible}
    results = [
        PartySeats(
            id=entry.id,
            votes=entry.votes,
            seats=allocation.get(entry.id, 0),
            vote_share=entry.votes / total_votes,
            seat_share=allocation.get(entry.id, 0) / total_seats,
            eligible=entry.id in eligible_ids,
        )
        for entry in entries
    ]
    results.sort(key=lambda result: (-result.seats, -result.votes, result.id))

    elapsed = (time.perf_counter() - started) * 1000
    logger.debug("D'Hondt allocation of {} seats over {} parties took {:.2f}ms", total_seats, len(eligible), elapsed)
    return results


def allocate_election(
    election: ElectionResult,
    threshold: float = 0.0,
    tie_break: TieBreak = TieBreak.VOTES,
    seed: int = 0,
) -> ElectionResult:
    """Return ``election`` with every party's seat count filled in."""

    results = allocate(election.parties, election.total_seats, threshold, tie_break, seed)
    seats = {result.id: result.seats for result in results}
    parties = tuple(replace(party, seats=seats[party.id]) for party in election.parties)
    return replace(election, parties=parties)


def quota_threshold(total_seats: int) -> float:
    """Vote share of one full quota (total votes / seats), the Dutch entry bar."""

    if total_seats <= 0:
        raise InvalidInputError(f"Total seats must be positive, got {total_seats}")
    return 1 / total_seats


def validate_results(results: Iterable[Any], expected: Mapping[str, int]) -> List[SeatMismatch]:
    """Compare an allocation with a published distribution.

    Parties missing from ``expected`` are expected to have no seats. An empty
    list means the allocation matches exactly.
    """

    actual = {result.id: result.seats for result in results}
    mismatches: List[SeatMismatch] = []
    for party_id in sorted(set(actual) | set(expected)):
        want = expected.get(party_id, 0)
        got = actual.get(party_id, 0)
        if want != got:
            mismatches.append(SeatMismatch(party_id=party_id, expected=want, actual=got))
    for mismatch in mismatches:
        logger.warning(
            "{} expected {} seats, got {}", mismatch.party_id, mismatch.expected, mismatch.actual
        )
    return mismatches


def _normalise(parties: Iterable[Any] | Mapping[str, int]) -> List[PartyVotes]:
    if isinstance(parties, Mapping):
        return [PartyVotes(id=party_id, votes=votes) for party_id, votes in parties.items()]

    entries: List[PartyVotes] = []
    for party in parties:
        if isinstance(party, tuple) and len(party) == 2:
            party_id, votes = party
        else:
            try:
                party_id, votes = party.id, party.votes
            except AttributeError:
                raise InvalidInputError(f"Cannot read id and votes from {party!r}") from None
        entries.append(PartyVotes(id=party_id, votes=votes))
    return entries


def _validate(entries: Sequence[PartyVotes], total_seats: int, threshold: float) -> None:
    if not entries:
        raise InvalidInputError("The party list is empty")
    if isinstance(total_seats, bool) or not isinstance(total_seats, int) or total_seats <= 0:
        raise InvalidInputError(f"Total seats must be a positive integer, got {total_seats!r}")
    if not 0.0 <= threshold < 1.0:
        raise InvalidInputError(f"Threshold must be a share in [0, 1), got {threshold!r}")

    seen = set()
    for entry in entries:
        if entry.id in seen:
            raise InvalidInputError("Duplicate party id", entry.id)
        seen.add(entry.id)
        if isinstance(entry.votes, bool) or not isinstance(entry.votes, numbers.Real):
            raise InvalidInputError(f"Vote count {entry.votes!r} is not a number", entry.id)
        if entry.votes < 0:
            raise InvalidInputError(f"Negative vote count {entry.votes}", entry.id)

    if all(entry.votes == 0 for entry in entries):
        raise InvalidInputError("All vote counts are zero")


def _exact(votes) -> Fraction:
    if isinstance(votes, int):
        return Fraction(votes)
    return Fraction(float(votes))


def _lot_ranking(parties: Sequence[Any], seed: int) -> Dict[str, int]:
    order = sorted(party.id for party in parties)
    random.Random(seed).shuffle(order)
    return {party_id: rank for rank, party_id in enumerate(order)}


__all__ = [
    "TieBreak",
    "DhondtSeat",
    "PartySeats",
    "SeatMismatch",
    "dhondt_allocation",
    "allocate",
    "allocate_election",
    "quota_threshold",
    "validate_results",
]
