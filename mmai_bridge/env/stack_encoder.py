"""Stack encoder: live units -> 14 fixed slots of bounded attributes."""

from dataclasses import dataclass
from typing import Optional

from mmai_bridge.data.constants import (
    N_SLOTS, N_STACKS, N_STACK_ATTRS, STACK_ATTR_BOUNDS, StackAttr,
)
from mmai_bridge.env.errors import ProtocolError
from mmai_bridge.env.host import HostView, Unit
from mmai_bridge.env.nvalue import NormalizedValue, nvalue


@dataclass(frozen=True)
class Stack:
    """One encoded slot. ``unit`` is None for an empty slot."""
    index: int                    # 0..13
    unit: Optional[Unit]
    attrs: tuple[int, ...]        # raw values in StackAttr order

    @property
    def present(self) -> bool:
        return self.unit is not None and self.unit.alive

    def attr(self, a: StackAttr) -> int:
        return self.attrs[int(a)]

    def export(self) -> list[NormalizedValue]:
        """Normalized attributes; dead/absent slots export defaults."""
        if not self.present:
            return [nvalue(0, STACK_ATTR_BOUNDS[a]) for a in StackAttr]
        return [nvalue(self.attrs[a], STACK_ATTR_BOUNDS[a]) for a in StackAttr]


def unit_attrs(unit: Unit) -> tuple[int, ...]:
    """Raw attributes of a unit, in StackAttr order.

    Melee and ranged damage are kept as separate (min, max) pairs.
    """
    res = [0] * N_STACK_ATTRS
    res[StackAttr.QUANTITY] = unit.quantity
    res[StackAttr.ATTACK] = unit.attack
    res[StackAttr.DEFENSE] = unit.defense
    res[StackAttr.SHOTS] = unit.shots
    res[StackAttr.MELEE_DMG_MIN] = unit.melee_dmg_min
    res[StackAttr.MELEE_DMG_MAX] = unit.melee_dmg_max
    res[StackAttr.RANGED_DMG_MIN] = unit.ranged_dmg_min
    res[StackAttr.RANGED_DMG_MAX] = unit.ranged_dmg_max
    res[StackAttr.HP] = unit.max_health
    res[StackAttr.HP_LEFT] = unit.first_hp_left
    res[StackAttr.SPEED] = unit.speed
    res[StackAttr.WAITED] = int(unit.waited)
    return tuple(res)


def stack_index(unit: Unit, my_side: int) -> int:
    """0..6 for our units, 7..13 for the enemy's."""
    if not 0 <= unit.slot < N_SLOTS:
        # summoned units?
        raise ProtocolError(f"Unexpected slot: {unit.slot} (unit {unit.unit_id})")
    return unit.slot if unit.side == my_side else unit.slot + N_SLOTS


def encode_stacks(view: HostView) -> tuple[Stack, ...]:
    """Map every unit reported by the engine to its fixed slot.

    Dead units keep their slot (so they can still be named as a target)
    unless a live unit claims it.
    """
    units = list(view.units())
    alive = [u for u in units if u.alive]

    # summoned units?
    if len(alive) > N_STACKS:
        raise ProtocolError(f"Unexpected live unit count: {len(alive)}")

    slots: list[Optional[Unit]] = [None] * N_STACKS

    for unit in alive:
        i = stack_index(unit, view.my_side)
        if slots[i] is not None:
            raise ProtocolError(
                f"Slot {i} claimed by units {slots[i].unit_id} and {unit.unit_id}"
            )
        slots[i] = unit

    for unit in units:
        if unit.alive:
            continue
        i = stack_index(unit, view.my_side)
        if slots[i] is None:
            slots[i] = unit

    res = []
    for i, unit in enumerate(slots):
        attrs = unit_attrs(unit) if unit is not None else (0,) * N_STACK_ATTRS
        res.append(Stack(i, unit, attrs))

    return tuple(res)
