"""
Shared pytest fixtures for the MMAI bridge test suite.

Battles are built on the sandbox host, which implements the full
``HostView`` protocol. Coordinates are engine (x, y), 1 <= x <= 15.
"""

import pytest

from mmai_bridge.env.geometry import ATTACKER, DEFENDER, bhex
from mmai_bridge.env.sandbox import SandboxBattle, make_unit


def battle_with(*units, active=None, obstacles=(), my_side=ATTACKER):
    battle = SandboxBattle(units, my_side=my_side, obstacles=obstacles, seed=0)
    battle.activate(units[0].unit_id if active is None else active)
    return battle


# =============================================================================
# Battles
# =============================================================================


@pytest.fixture
def make_battle():
    """Factory: ``make_battle(*units, active=None, obstacles=(), my_side=0)``."""
    return battle_with


@pytest.fixture
def melee_battle():
    """Our melee unit (slot 0, speed 5) at (5,5); enemy slot 2 at (10,5)."""
    return battle_with(
        make_unit(1, ATTACKER, 0, 5, 5, speed=5),
        make_unit(2, DEFENDER, 2, 10, 5),
    )


@pytest.fixture
def ranged_battle():
    """Our shooter at (3,3); enemy slot 2 far away at (13,7)."""
    return battle_with(
        make_unit(1, ATTACKER, 0, 3, 3, shots=5, ranged_dmg_min=2, ranged_dmg_max=3),
        make_unit(2, DEFENDER, 2, 13, 7),
    )


@pytest.fixture
def wide_battle():
    """Our two-hex unit at (5,5) (back hex (4,5)); enemy slot 1 at (12,5)."""
    return battle_with(
        make_unit(1, ATTACKER, 0, 5, 5, speed=3, double_wide=True),
        make_unit(2, DEFENDER, 1, 12, 5),
    )


@pytest.fixture
def obstacle_battle():
    """Like melee_battle, with an obstacle right of our unit at (6,5)."""
    return battle_with(
        make_unit(1, ATTACKER, 0, 5, 5, speed=5),
        make_unit(2, DEFENDER, 2, 10, 5),
        obstacles=[bhex(6, 5)],
    )


@pytest.fixture
def wide_vs_wide_battle():
    """Two-hex units: ours at (5,5) with speed 15, enemy slot 1 at (8,5) (back hex (9,5))."""
    return battle_with(
        make_unit(1, ATTACKER, 0, 5, 5, speed=15, double_wide=True),
        make_unit(2, DEFENDER, 1, 8, 5, double_wide=True),
    )
