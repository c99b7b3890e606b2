"""Hex grid helpers.

Two id spaces are in use:

* engine hexes (``bhex``): ``x + y * 17`` over the full 17x11 grid,
  including the two unusable side columns;
* observation hexes (``hex_id``): ``(x - 1) + y * 15`` over the 165 usable
  cells, row-major.

Odd rows are shifted half a hex to the left of even rows.
"""

from enum import IntEnum

from mmai_bridge.data.constants import BFIELD_WIDTH, BFIELD_HEIGHT, BF_XMAX, BF_SIZE

INVALID_HEX = -1

ATTACKER = 0
DEFENDER = 1


class Direction(IntEnum):
    TOP_LEFT = 0
    TOP_RIGHT = 1
    RIGHT = 2
    BOTTOM_RIGHT = 3
    BOTTOM_LEFT = 4
    LEFT = 5


def bhex(x: int, y: int) -> int:
    """Engine hex for (x, y), or INVALID_HEX if outside the grid."""
    if 0 <= x < BFIELD_WIDTH and 0 <= y < BFIELD_HEIGHT:
        return x + y * BFIELD_WIDTH
    return INVALID_HEX


def xy(bh: int) -> tuple[int, int]:
    return bh % BFIELD_WIDTH, bh // BFIELD_WIDTH


def is_valid(bh: int) -> bool:
    return 0 <= bh < BFIELD_WIDTH * BFIELD_HEIGHT


def is_available(bh: int) -> bool:
    """Valid and not in a side column."""
    if not is_valid(bh):
        return False
    x, _ = xy(bh)
    return 0 < x < BFIELD_WIDTH - 1


def hex_id(bh: int) -> int:
    """Engine hex -> observation hex id (0..164)."""
    if not is_available(bh):
        raise ValueError(f"Hex unavailable: {bh}")
    x, y = xy(bh)
    return (x - 1) + y * BF_XMAX


def bhex_of(hid: int) -> int:
    """Observation hex id -> engine hex."""
    if not 0 <= hid < BF_SIZE:
        raise ValueError(f"Hex id out of range: {hid}")
    return bhex(hid % BF_XMAX + 1, hid // BF_XMAX)


def hex_name(hid: int) -> str:
    """1-based (x, y) label used in logs and renders."""
    return f"({1 + hid % BF_XMAX},{1 + hid // BF_XMAX})"


def neighbour(bh: int, direction: Direction) -> int:
    if not is_valid(bh):
        return INVALID_HEX

    x, y = xy(bh)
    odd = y % 2 == 1

    if direction == Direction.TOP_LEFT:
        return bhex(x - 1 if odd else x, y - 1)
    if direction == Direction.TOP_RIGHT:
        return bhex(x if odd else x + 1, y - 1)
    if direction == Direction.RIGHT:
        return bhex(x + 1, y)
    if direction == Direction.BOTTOM_RIGHT:
        return bhex(x if odd else x + 1, y + 1)
    if direction == Direction.BOTTOM_LEFT:
        return bhex(x - 1 if odd else x, y + 1)
    if direction == Direction.LEFT:
        return bhex(x - 1, y)
    raise ValueError(f"Unknown direction: {direction}")


def neighbours(bh: int) -> list[int]:
    """All valid neighbours of a hex (side columns included)."""
    res = []
    for d in Direction:
        n = neighbour(bh, d)
        if n != INVALID_HEX:
            res.append(n)
    return res


def back_hex(position: int, side: int) -> int:
    """Second cell of a two-hex unit: behind it, facing the enemy."""
    return neighbour(position, Direction.LEFT if side == ATTACKER else Direction.RIGHT)


def covered_hexes(position: int, side: int, double_wide: bool) -> list[int]:
    if not double_wide:
        return [position]
    back = back_hex(position, side)
    return [position] if back == INVALID_HEX else [position, back]


def surrounding_hexes(position: int, side: int, double_wide: bool) -> list[int]:
    """Available hexes adjacent to a unit, excluding the ones it covers."""
    covered = covered_hexes(position, side, double_wide)
    res = []
    for c in covered:
        for n in neighbours(c):
            if n in covered or n in res or not is_available(n):
                continue
            res.append(n)
    return res


def are_adjacent(a: int, b: int) -> bool:
    return b in neighbours(a)


def forward_directions(side: int) -> tuple[Direction, Direction, Direction]:
    """(top, straight, bottom) directions pointing away from a side's back."""
    if side == ATTACKER:
        return (Direction.TOP_RIGHT, Direction.RIGHT, Direction.BOTTOM_RIGHT)
    return (Direction.TOP_LEFT, Direction.LEFT, Direction.BOTTOM_LEFT)


def distance(a: int, b: int) -> int:
    """Number of steps between two hexes on an empty grid."""
    ax, ay = xy(a)
    bx, by = xy(b)
    # even rows are shifted right => axial q = x - ceil(y / 2)
    aq = ax - (ay + (ay & 1)) // 2
    bq = bx - (by + (by & 1)) // 2
    dq, dr = aq - bq, ay - by
    return (abs(dq) + abs(dr) + abs(dq + dr)) // 2
