"""Types exchanged with the host battle engine.

The engine is an external collaborator; the bridge only reads it through
``HostView`` and hands back one ``EngineCommand`` per turn.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Protocol, Sequence

from mmai_bridge.env import geometry


class Accessibility(IntEnum):
    """Per-hex accessibility as reported by the engine."""
    ACCESSIBLE = 0
    OBSTACLE = 1
    ALIVE_STACK = 2
    DESTRUCTIBLE_WALL = 3
    GATE = 4
    UNAVAILABLE = 5
    SIDE_COLUMN = 6


@dataclass(frozen=True)
class Unit:
    """Snapshot of one army stack as seen by the engine."""
    unit_id: int
    side: int                   # 0 = attacker, 1 = defender
    slot: int                   # 0..6
    position: int               # engine hex
    quantity: int
    attack: int
    defense: int
    shots: int
    melee_dmg_min: int
    melee_dmg_max: int
    ranged_dmg_min: int
    ranged_dmg_max: int
    max_health: int
    first_hp_left: int
    speed: int
    waited: bool = False
    double_wide: bool = False
    alive: bool = True
    valid_target: bool = True   # False for turrets etc.
    ai_value: int = 0           # per-creature value, used for kill statistics

    @property
    def occupied_hex(self) -> int:
        """The "back" hex of a two-hex unit (INVALID_HEX for one-hex units)."""
        if not self.double_wide:
            return geometry.INVALID_HEX
        return geometry.back_hex(self.position, self.side)

    @property
    def hexes(self) -> list[int]:
        return geometry.covered_hexes(self.position, self.side, self.double_wide)

    def covers(self, bh: int) -> bool:
        return bh in self.hexes


class HostView(Protocol):
    """Read-only view of the engine for one turn."""

    my_side: int

    def active_unit(self) -> Optional[Unit]: ...

    def accessibility(self, bh: int) -> Accessibility: ...

    def distance(self, bh: int) -> int: ...

    def accessible_for_double_wide(self, bh: int, side: int) -> bool: ...

    def units(self) -> Sequence[Unit]: ...

    def unit_at(self, bh: int) -> Optional[Unit]: ...

    def can_shoot(self, unit: Unit) -> bool: ...

    def is_melee_possible(self, attacker: Unit, defender: Unit, from_bh: int) -> bool: ...


class CommandKind(Enum):
    RETREAT = "retreat"
    DEFEND = "defend"
    WAIT = "wait"
    MOVE = "move"
    MELEE = "melee"
    SHOOT = "shoot"


@dataclass(frozen=True)
class EngineCommand:
    """One validated unit action for the engine to apply."""
    kind: CommandKind
    side: int
    unit_id: Optional[int] = None
    dest: Optional[int] = None       # engine hex to move to / attack from
    target_id: Optional[int] = None
    target_hex: Optional[int] = None

    @classmethod
    def retreat(cls, side: int) -> "EngineCommand":
        return cls(CommandKind.RETREAT, side)

    @classmethod
    def defend(cls, unit: Unit) -> "EngineCommand":
        return cls(CommandKind.DEFEND, unit.side, unit.unit_id)

    @classmethod
    def wait(cls, unit: Unit) -> "EngineCommand":
        return cls(CommandKind.WAIT, unit.side, unit.unit_id)

    @classmethod
    def move(cls, unit: Unit, dest: int) -> "EngineCommand":
        return cls(CommandKind.MOVE, unit.side, unit.unit_id, dest=dest)

    @classmethod
    def melee(cls, unit: Unit, target: Unit, dest: int) -> "EngineCommand":
        return cls(CommandKind.MELEE, unit.side, unit.unit_id, dest=dest,
                   target_id=target.unit_id, target_hex=target.position)

    @classmethod
    def shoot(cls, unit: Unit, target: Unit) -> "EngineCommand":
        return cls(CommandKind.SHOOT, unit.side, unit.unit_id,
                   target_id=target.unit_id, target_hex=target.position)


@dataclass(frozen=True)
class AttackLog:
    """One "stacks attacked" event, reported by the engine between turns.

    Damage to our own unit counts as received, even when dealt by a friendly
    unit.
    """
    attacker_slot: int
    defender_slot: int
    our_unit_attacked: bool
    dmg: int
    units: int
    value: int
