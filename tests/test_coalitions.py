from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from itertools import combinations
from pathlib import Path
import threading

import pytest

from coalition_engine.coalitions import (
    analyze_coalitions,
    compatible_additions,
    evaluate_coalition,
    find_viable_coalitions,
    majority_threshold,
)
from coalition_engine.compatibility import Aggregation, CompatibilityModel
from coalition_engine.data_loader import Party, load_election
from coalition_engine.dhondt import allocate_election
from coalition_engine.errors import AnalysisCancelled, ComputationLimitExceeded, InvalidInputError

DATA_DIR = Path(__file__).resolve().parent / "data"


def _party(party_id: str, seats: int, ideology=(0.0, 0.0), excluded=()) -> Party:
    return Party(
        id=party_id,
        name=party_id,
        seats=seats,
        ideology=tuple(float(score) for score in ideology),
        excluded_partners=tuple(excluded),
    )


def _four_parties() -> list[Party]:
    return [
        _party("A", 50, (0, 0)),
        _party("B", 40, (6, 0)),
        _party("C", 35, (2, 0)),
        _party("D", 25, (-8, 0)),
    ]


def _tk2023() -> list[Party]:
    return list(allocate_election(load_election(DATA_DIR / "tk2023.csv", 150)).parties)


def test_majority_threshold():
    assert majority_threshold(150) == 76
    assert majority_threshold(75) == 38


def test_four_party_scenario_ranks_pairs_by_compatibility():
    coalitions = find_viable_coalitions(_four_parties(), 150, max_size=2)

    assert [candidate.member_ids for candidate in coalitions] == [("A", "C"), ("A", "B")]
    best, second = coalitions
    assert best.total_seats == 85
    assert second.total_seats == 90
    # Equal weights over two axes: sqrt(0.5 * 2 ** 2) and sqrt(0.5 * 6 ** 2).
    assert best.compatibility_score == pytest.approx(10 * (1 - 2**0.5 / 20))
    assert second.compatibility_score == pytest.approx(10 * (1 - 18**0.5 / 20))


def test_one_seat_short_is_not_viable():
    coalitions = find_viable_coalitions(_four_parties(), 150, max_size=4)
    members = {candidate.member_ids for candidate in coalitions}

    assert ("B", "C") not in members
    assert ("A", "D") not in members
    assert ("B", "C", "D") in members


def test_returns_exactly_the_viable_subsets():
    parties = [
        _party("A", 41, (1, 2)),
        _party("B", 33, (-3, 4)),
        _party("C", 27, (5, -5)),
        _party("D", 19, (0, 0)),
        _party("E", 12, (-9, 9)),
        _party("F", 10, (7, 1)),
        _party("G", 8, (2, -2)),
    ]
    seats = {party.id: party.seats for party in parties}

    coalitions = find_viable_coalitions(parties, 150, max_size=4)

    expected = {
        tuple(sorted(ids))
        for size in range(2, 5)
        for ids in combinations(seats, size)
        if 2 * sum(seats[party_id] for party_id in ids) > 150
    }
    assert {candidate.member_ids for candidate in coalitions} == expected
    assert len(coalitions) == len(expected)
    assert all(candidate.is_viable and 2 * candidate.total_seats > 150 for candidate in coalitions)


def test_scores_stay_within_bounds():
    parties = [
        _party("A", 60, (-10, -10)),
        _party("B", 50, (10, 10)),
        _party("C", 40, (10, -10)),
    ]

    coalitions = find_viable_coalitions(parties, 150, max_size=3)

    assert coalitions
    assert all(0.0 <= candidate.compatibility_score <= 10.0 for candidate in coalitions)
    opposite = next(candidate for candidate in coalitions if candidate.member_ids == ("A", "B"))
    assert opposite.compatibility_score == 0.0


def test_no_majority_within_size_gives_empty_list():
    parties = [_party(party_id, 30) for party_id in "ABCDE"]

    assert find_viable_coalitions(parties, 150, max_size=2) == []


def test_single_party_majority_only_with_min_size_one():
    parties = [_party("A", 80), _party("B", 40), _party("C", 30)]

    pairs_and_up = find_viable_coalitions(parties, 150, max_size=2)
    with_singles = find_viable_coalitions(parties, 150, max_size=2, min_size=1)

    assert ("A",) not in {candidate.member_ids for candidate in pairs_and_up}
    assert with_singles[0].member_ids == ("A",)
    assert with_singles[0].compatibility_score == 10.0
    assert analyze_coalitions(parties, 150).single_party_majority == "A"


def test_mean_and_minimum_aggregation():
    parties = [_party("A", 50, (0,)), _party("B", 50, (2,)), _party("C", 50, (10,))]

    mean = evaluate_coalition(["A", "B", "C"], parties, 150)
    weakest = evaluate_coalition(
        ["A", "B", "C"], parties, 150, CompatibilityModel(aggregation=Aggregation.MIN)
    )

    # Pair scores: A-B 9, A-C 5, B-C 6.
    assert mean.compatibility_score == pytest.approx(20 / 3)
    assert weakest.compatibility_score == pytest.approx(5.0)


def test_ties_prefer_fewer_members_then_smaller_surplus():
    parties = [_party("A", 60), _party("B", 50), _party("C", 20), _party("D", 20)]

    coalitions = find_viable_coalitions(parties, 150, max_size=3)

    assert [candidate.member_ids for candidate in coalitions[:3]] == [("A", "C"), ("A", "D"), ("A", "B")]
    assert all(candidate.size == 3 for candidate in coalitions[3:])
    assert [candidate.surplus for candidate in coalitions[3:]] == sorted(
        candidate.surplus for candidate in coalitions[3:]
    )


def test_minimal_winning_flag():
    parties = [_party("A", 60), _party("B", 50), _party("C", 20), _party("D", 20)]

    by_members = {
        candidate.member_ids: candidate for candidate in find_viable_coalitions(parties, 150, max_size=3)
    }

    assert by_members[("A", "C")].is_minimal
    assert not by_members[("A", "B", "C")].is_minimal
    assert by_members[("B", "C", "D")].is_minimal


def test_red_lines_mark_coalitions_as_blocked():
    parties = [
        _party("A", 50, excluded=("B",)),
        _party("B", 40),
        _party("C", 35),
        _party("D", 25),
    ]

    coalitions = find_viable_coalitions(parties, 150, max_size=2)
    unblocked = find_viable_coalitions(parties, 150, max_size=2, exclude_blocked=True)

    blocked = next(candidate for candidate in coalitions if candidate.member_ids == ("A", "B"))
    assert blocked.red_line_violations == ("A excludes B",)
    assert [candidate.member_ids for candidate in unblocked] == [("A", "C")]


def test_no_duplicate_coalitions():
    coalitions = find_viable_coalitions(_tk2023(), 150, max_size=5)
    members = [candidate.member_ids for candidate in coalitions]

    assert len(members) == len(set(members))
    assert all(list(ids) == sorted(ids) for ids in members)


def test_2023_analysis():
    parties = _tk2023()

    analysis = analyze_coalitions(parties, 150, max_size=4)
    members = {candidate.member_ids for candidate in analysis.viable}

    assert analysis.majority == 76
    assert analysis.single_party_majority is None
    assert tuple(sorted(["PVV", "VVD", "NSC", "BBB"])) in members
    assert all(2 * candidate.total_seats > 150 for candidate in analysis.viable)
    assert all(60 <= candidate.total_seats < 76 for candidate in analysis.minority_options)
    assert tuple(sorted(["PVV", "GL-PvdA", "VVD"])) in {candidate.member_ids for candidate in analysis.blocked}
    assert analysis.most_compatible == analysis.viable[0]
    scores = [candidate.compatibility_score for candidate in analysis.viable]
    assert scores == sorted(scores, reverse=True)


def test_seatless_parties_need_no_ideology():
    parties = _four_parties() + [Party(id="E", name="E", votes=10)]

    assert find_viable_coalitions(parties, 150, max_size=2)


def test_seat_total_must_match():
    with pytest.raises(InvalidInputError):
        find_viable_coalitions(_four_parties(), 151)


def test_missing_ideology_names_the_party():
    parties = _four_parties()[:3] + [Party(id="D", name="D", seats=25)]

    with pytest.raises(InvalidInputError) as excinfo:
        find_viable_coalitions(parties, 150)

    assert excinfo.value.party_id == "D"


def test_ideology_dimensions_must_agree():
    parties = _four_parties()[:3] + [_party("D", 25, (1, 2, 3))]

    with pytest.raises(InvalidInputError) as excinfo:
        find_viable_coalitions(parties, 150)

    assert excinfo.value.party_id == "D"


def test_invalid_sizes_are_rejected():
    with pytest.raises(InvalidInputError):
        find_viable_coalitions(_four_parties(), 150, max_size=1)
    with pytest.raises(InvalidInputError):
        find_viable_coalitions(_four_parties(), 150, min_size=0)


def test_combination_limit():
    with pytest.raises(ComputationLimitExceeded) as excinfo:
        find_viable_coalitions(_tk2023(), 150, max_size=5, max_combinations=10)

    assert excinfo.value.limit == 10
    assert excinfo.value.evaluated == 11


def test_cancelled_enumeration():
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AnalysisCancelled):
        find_viable_coalitions(_tk2023(), 150, cancel=cancel)


def test_concurrent_calls_agree():
    parties = _tk2023()
    with ThreadPoolExecutor(max_workers=4) as executor:
        runs = list(executor.map(lambda _: find_viable_coalitions(parties, 150, max_size=4), range(4)))

    assert all(run == runs[0] for run in runs)


def test_evaluate_coalition_reports_non_viable_selection():
    candidate = evaluate_coalition(["B", "C"], _four_parties(), 150)

    assert candidate.total_seats == 75
    assert not candidate.is_viable
    assert candidate.surplus == -1
    assert not candidate.is_minimal


def test_evaluate_coalition_rejects_unknown_and_repeated_parties():
    with pytest.raises(InvalidInputError) as excinfo:
        evaluate_coalition(["A", "X"], _four_parties(), 150)
    assert excinfo.value.party_id == "X"

    with pytest.raises(InvalidInputError):
        evaluate_coalition(["A", "A"], _four_parties(), 150)


def test_compatible_additions():
    additions = compatible_additions(["A"], _four_parties(), 150, min_compatibility=7.5)

    assert [candidate.member_ids for candidate in additions] == [("A", "C"), ("A", "B")]
    assert all(candidate.compatibility_score >= 7.5 for candidate in additions)
