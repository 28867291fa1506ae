from __future__ import annotations

import pytest

from coalition_engine.compatibility import (
    Aggregation,
    CompatibilityModel,
    aggregate,
    coalition_compatibility,
    pair_compatibility,
    partnership_table,
    red_line_violations,
    weighted_distance,
)
from coalition_engine.data_loader import Party
from coalition_engine.errors import InvalidInputError


def _party(party_id: str, ideology, excluded=()) -> Party:
    return Party(id=party_id, name=party_id, seats=10, ideology=tuple(ideology), excluded_partners=tuple(excluded))


def test_identical_positions_score_ten():
    first = _party("A", (3.0, -2.0, 5.0))
    second = _party("B", (3.0, -2.0, 5.0))

    assert pair_compatibility(first, second) == 10.0


def test_opposite_extremes_score_zero():
    left = _party("L", (-10.0, -10.0))
    right = _party("R", (10.0, 10.0))

    assert pair_compatibility(left, right) == 0.0


def test_score_is_symmetric():
    first = _party("A", (1.0, 4.0))
    second = _party("B", (-3.0, 0.5))

    assert pair_compatibility(first, second) == pair_compatibility(second, first)


def test_weights_are_normalised():
    first = _party("A", (0.0, 0.0))
    second = _party("B", (4.0, 10.0))

    # Only the first axis counts: distance 4 out of 20.
    score = pair_compatibility(first, second, CompatibilityModel(weights=(2.0, 0.0)))

    assert score == pytest.approx(8.0)
    assert CompatibilityModel(weights=(1.0, 3.0)).normalised_weights(2) == pytest.approx((0.25, 0.75))


@pytest.mark.parametrize("weights", [(1.0,), (1.0, -1.0), (0.0, 0.0)])
def test_invalid_weights_are_rejected(weights):
    first = _party("A", (0.0, 0.0))
    second = _party("B", (1.0, 1.0))

    with pytest.raises(InvalidInputError):
        pair_compatibility(first, second, CompatibilityModel(weights=weights))


def test_weighted_distance():
    assert weighted_distance((0.0, 0.0), (3.0, 4.0), (1.0, 1.0)) == pytest.approx(5.0)
    assert weighted_distance((0.0, 0.0), (3.0, 4.0), (0.5, 0.5)) == pytest.approx(12.5**0.5)


def test_missing_ideology_names_the_party():
    with pytest.raises(InvalidInputError) as excinfo:
        pair_compatibility(_party("A", (1.0,)), _party("B", ()))

    assert excinfo.value.party_id == "B"


def test_dimension_mismatch_is_rejected():
    with pytest.raises(InvalidInputError) as excinfo:
        pair_compatibility(_party("A", (1.0, 2.0)), _party("B", (1.0, 2.0, 3.0)))

    assert excinfo.value.party_id == "B"


def test_partnership_bonus_raises_and_lowers_the_score():
    first = _party("A", (0.0, 0.0))
    second = _party("B", (4.0, 0.0))
    base = pair_compatibility(first, second)

    table = partnership_table([("A", "B", 0.5)])
    rivals = partnership_table([("B", "A", -0.5)])
    friendly = pair_compatibility(first, second, CompatibilityModel(partnerships=table, partnership_weight=0.2))
    hostile = pair_compatibility(first, second, CompatibilityModel(partnerships=rivals, partnership_weight=0.2))

    assert friendly == pytest.approx(base + 1.0)
    assert hostile == pytest.approx(base - 1.0)


def test_bonus_never_pushes_score_past_ten():
    first = _party("A", (0.0,))
    second = _party("B", (0.0,))
    model = CompatibilityModel(partnerships=partnership_table([("A", "B", 1.0)]), partnership_weight=1.0)

    assert pair_compatibility(first, second, model) == 10.0


def test_partnership_bonus_must_be_in_range():
    with pytest.raises(InvalidInputError):
        partnership_table([("A", "B", 1.5)])


def test_red_line_penalty():
    first = _party("A", (0.0,), excluded=("B",))
    second = _party("B", (0.0,))
    model = CompatibilityModel(red_line_weight=0.6)

    # One of the two parties refuses: half the penalty.
    assert pair_compatibility(first, second, model) == pytest.approx(7.0)
    assert pair_compatibility(first, second) == 10.0


def test_red_line_violations_are_listed_per_refusal():
    parties = [
        _party("B", (0.0,), excluded=("A", "Z")),
        _party("A", (0.0,), excluded=("B",)),
        _party("C", (0.0,)),
    ]

    assert red_line_violations(parties) == ("A excludes B", "B excludes A")
    assert red_line_violations(parties[2:]) == ()


def test_aggregate():
    assert aggregate([]) == 10.0
    assert aggregate([9.0, 5.0, 6.0]) == pytest.approx(20 / 3)
    assert aggregate([9.0, 5.0, 6.0], Aggregation.MIN) == 5.0


def test_coalition_compatibility_does_not_depend_on_order():
    parties = [_party("A", (0.0,)), _party("B", (2.0,)), _party("C", (10.0,))]

    forward = coalition_compatibility(parties)
    backward = coalition_compatibility(list(reversed(parties)))

    assert forward == backward == pytest.approx(20 / 3)
    assert coalition_compatibility(parties[:1]) == 10.0
