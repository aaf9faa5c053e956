"""Tests for the rank -> points/wins table."""
import pytest

from standings.services.scoring import points_for_rank, wins_for_rank


@pytest.mark.parametrize(
    "rank,points",
    [(1, 100), (2, 70), (3, 50), (4, 40), (5, 30), (6, 20), (7, 10), (8, 10), (9, 10), (10, 10)],
)
def test_points_table(rank, points):
    assert points_for_rank(rank) == points


@pytest.mark.parametrize("rank", [0, 11, -1, 100, None, "1", 1.0, True])
def test_points_outside_table_is_zero(rank):
    assert points_for_rank(rank) == 0


def test_only_first_place_counts_as_win():
    assert wins_for_rank(1) == 1
    assert [wins_for_rank(r) for r in range(2, 11)] == [0] * 9
    assert wins_for_rank(None) == 0
    assert wins_for_rank(True) == 0
