"""Points and wins awarded per finishing rank."""
from __future__ import annotations

from typing import Optional

POINTS_BY_RANK = {1: 100, 2: 70, 3: 50, 4: 40, 5: 30, 6: 20, 7: 10, 8: 10, 9: 10, 10: 10}


def points_for_rank(rank: Optional[int]) -> int:
    """Points for a finishing position; 0 for missing or out-of-table ranks."""
    if isinstance(rank, bool) or not isinstance(rank, int):
        return 0
    return POINTS_BY_RANK.get(rank, 0)


def wins_for_rank(rank: Optional[int]) -> int:
    return 1 if rank == 1 and not isinstance(rank, bool) else 0
