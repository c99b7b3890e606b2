"""Minimal in-process host engine.

Good enough to drive the bridge end to end: BFS movement over free hexes,
melee between adjacent units, shooting for units with ammo and no adjacent
enemy, and a simple scripted opponent. It is not a battle simulator.
"""

import logging
import math
import random
from collections import deque
from dataclasses import replace
from typing import Callable, Optional, Sequence

from mmai_bridge.env import geometry
from mmai_bridge.env.host import (
    Accessibility, AttackLog, CommandKind, EngineCommand, Unit,
)

logger = logging.getLogger(__name__)

UNREACHABLE = 1000


class SandboxBattle:
    """Turn loop plus the ``HostView`` queries for the active unit."""

    def __init__(self, units: Sequence[Unit], my_side: int = geometry.ATTACKER,
                 obstacles: Sequence[int] = (), max_rounds: int = 50,
                 seed: Optional[int] = None):
        self.my_side = my_side
        self.obstacles = frozenset(obstacles)
        self.max_rounds = max_rounds
        self.rng = random.Random(seed)

        self._units = {u.unit_id: u for u in units}
        self._active_id: Optional[int] = None
        self._dist: Optional[dict[int, int]] = None

        self.round = 0
        self.ended = False
        self.winner: Optional[int] = None
        self.reset_requested = False
        self.on_attack: Optional[Callable[[AttackLog], None]] = None

    # ------------------------------------------------------------------
    # HostView
    # ------------------------------------------------------------------

    def activate(self, unit_id: Optional[int]):
        """Make ``unit_id`` the unit whose turn it is."""
        self._active_id = unit_id
        self._dist = None

    def active_unit(self) -> Optional[Unit]:
        if self._active_id is None:
            return None
        return self._units[self._active_id]

    def units(self) -> list[Unit]:
        return list(self._units.values())

    def unit_at(self, bh: int) -> Optional[Unit]:
        for u in self._units.values():
            if u.alive and u.covers(bh):
                return u
        return None

    def accessibility(self, bh: int) -> Accessibility:
        if not geometry.is_available(bh):
            return Accessibility.SIDE_COLUMN
        if bh in self.obstacles:
            return Accessibility.OBSTACLE
        if self.unit_at(bh) is not None:
            return Accessibility.ALIVE_STACK
        return Accessibility.ACCESSIBLE

    def distance(self, bh: int) -> int:
        return self._distances().get(bh, UNREACHABLE)

    def accessible_for_double_wide(self, bh: int, side: int) -> bool:
        unit = self.active_unit()
        return unit is not None and unit.side == side and self._passable(unit, bh)

    def can_shoot(self, unit: Unit) -> bool:
        if unit.shots <= 0 or unit.ranged_dmg_max <= 0:
            return False
        return not any(self._adjacent(unit, e) for e in self._enemies_of(unit))

    def is_melee_possible(self, attacker: Unit, defender: Unit, from_bh: int) -> bool:
        moved = replace(attacker, position=from_bh)
        return self._adjacent(moved, defender)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _enemies_of(self, unit: Unit) -> list[Unit]:
        return [u for u in self._units.values() if u.alive and u.side != unit.side]

    @staticmethod
    def _adjacent(a: Unit, b: Unit) -> bool:
        return any(geometry.are_adjacent(x, y) for x in a.hexes for y in b.hexes)

    def _free_for(self, unit: Unit, bh: int) -> bool:
        if not geometry.is_available(bh) or bh in self.obstacles:
            return False
        other = self.unit_at(bh)
        return other is None or other.unit_id == unit.unit_id

    def _passable(self, unit: Unit, bh: int) -> bool:
        """Can ``unit`` stand with its front hex on ``bh``?"""
        hexes = geometry.covered_hexes(bh, unit.side, unit.double_wide)
        if len(hexes) != len(unit.hexes):
            return False
        return all(self._free_for(unit, h) for h in hexes)

    def _reachability(self, unit: Optional[Unit]) -> dict[int, int]:
        if unit is None:
            return {}

        dist = {unit.position: 0}
        queue = deque([unit.position])
        while queue:
            cur = queue.popleft()
            for n in geometry.neighbours(cur):
                if n in dist or not self._passable(unit, n):
                    continue
                dist[n] = dist[cur] + 1
                queue.append(n)
        return dist

    def _damage(self, attacker: Unit, defender: Unit, ranged: bool) -> AttackLog:
        lo, hi = ((attacker.ranged_dmg_min, attacker.ranged_dmg_max) if ranged
                  else (attacker.melee_dmg_min, attacker.melee_dmg_max))
        base = sum(self.rng.randint(lo, hi) for _ in range(min(attacker.quantity, 10)))
        base = base * attacker.quantity // min(attacker.quantity, 10)
        factor = 1 + 0.05 * (attacker.attack - defender.defense)
        dmg = max(1, int(base * min(max(factor, 0.3), 4.0)))

        total = (defender.quantity - 1) * defender.max_health + defender.first_hp_left
        left = max(0, total - dmg)
        quantity = math.ceil(left / defender.max_health)
        killed = defender.quantity - quantity
        first_hp = left - (quantity - 1) * defender.max_health if quantity else 0

        self._units[defender.unit_id] = replace(
            defender, quantity=quantity, first_hp_left=first_hp, alive=quantity > 0,
        )

        return AttackLog(
            attacker_slot=attacker.slot,
            defender_slot=defender.slot,
            our_unit_attacked=defender.side == self.my_side,
            dmg=min(dmg, total),
            units=killed,
            value=killed * defender.ai_value,
        )

    def apply(self, command: EngineCommand):
        """Execute one validated command for the active unit."""
        unit = self.active_unit()
        kind = command.kind

        if kind == CommandKind.RETREAT:
            self._finish(winner=1 - command.side)
            return
        if unit is None or command.unit_id != unit.unit_id:
            raise ValueError(f"Command {command} is not for the active unit")

        if kind == CommandKind.WAIT:
            self._units[unit.unit_id] = replace(unit, waited=True)
        elif kind == CommandKind.MOVE:
            self._units[unit.unit_id] = replace(unit, position=command.dest)
        elif kind in (CommandKind.MELEE, CommandKind.SHOOT):
            if kind == CommandKind.MELEE:
                unit = replace(unit, position=command.dest)
            else:
                unit = replace(unit, shots=unit.shots - 1)
            self._units[unit.unit_id] = unit

            log = self._damage(unit, self._units[command.target_id], kind == CommandKind.SHOOT)
            logger.debug("Unit %d hits unit %d for %d", unit.unit_id, command.target_id, log.dmg)
            if self.on_attack is not None:
                self.on_attack(log)

        alive_sides = {u.side for u in self._units.values() if u.alive}
        if len(alive_sides) < 2:
            self._finish(winner=alive_sides.pop() if alive_sides else None)

    def _finish(self, winner: Optional[int]):
        self.ended = True
        self.winner = winner
        self._active_id = None
        self._dist = None

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    def enemy_command(self, unit: Unit) -> EngineCommand:
        """Scripted opponent: shoot, else attack the closest target, else defend."""
        targets = self._enemies_of(unit)
        target = min(targets, key=lambda t: geometry.distance(unit.position, t.position))

        if self.can_shoot(unit):
            return EngineCommand.shoot(unit, target)

        reachable = [bh for bh, d in self._distances().items() if d <= unit.speed]
        for bh in sorted(reachable, key=lambda h: self.distance(h)):
            if self.is_melee_possible(unit, target, bh):
                return EngineCommand.melee(unit, target, bh)

        if reachable:
            dest = min(reachable, key=lambda h: geometry.distance(h, target.position))
            if dest != unit.position:
                return EngineCommand.move(unit, dest)
        return EngineCommand.defend(unit)

    def _distances(self) -> dict[int, int]:
        if self._dist is None:
            self._dist = self._reachability(self.active_unit())
        return self._dist

    def _queue(self) -> list[int]:
        alive = [u for u in self._units.values() if u.alive]
        alive.sort(key=lambda u: (-u.speed, u.side, u.slot))
        return [u.unit_id for u in alive]

    def play(self, decide: Callable[["SandboxBattle"], EngineCommand]):
        """Run the battle to the end.

        ``decide`` picks commands for our units (e.g. ``bridge.on_active_unit``);
        the opposing side is scripted.
        """
        while not self.ended and self.round < self.max_rounds:
            self.round += 1
            queue = deque(self._queue())
            waited: list[int] = []

            while queue and not self.ended:
                uid = queue.popleft()
                unit = self._units[uid]
                if not unit.alive:
                    continue

                self.activate(uid)

                if unit.side == self.my_side:
                    command = decide(self)
                else:
                    command = self.enemy_command(unit)

                if command.kind == CommandKind.WAIT:
                    waited.append(uid)

                self.apply(command)

                if self.reset_requested and not self.ended:
                    logger.info("Reset requested, abandoning battle")
                    self._finish(winner=None)

                if not queue and waited:
                    queue.extend(reversed(waited))
                    waited = []

            for uid, u in self._units.items():
                if u.waited:
                    self._units[uid] = replace(u, waited=False)

        if not self.ended:
            self._finish(winner=None)
        self._active_id = None
        logger.debug("Sandbox battle over after %d rounds, winner=%s", self.round, self.winner)

    @property
    def victory(self) -> bool:
        return self.winner == self.my_side


def make_unit(unit_id: int, side: int, slot: int, x: int, y: int, **kw) -> Unit:
    """Unit with middling default stats, placed at (x, y)."""
    attrs = dict(
        quantity=10, attack=5, defense=5, shots=0,
        melee_dmg_min=2, melee_dmg_max=4, ranged_dmg_min=0, ranged_dmg_max=0,
        max_health=10, first_hp_left=10, speed=5, ai_value=50,
    )
    attrs.update(kw)
    return Unit(unit_id=unit_id, side=side, slot=slot, position=geometry.bhex(x, y), **attrs)


def default_armies(n_slots: int = 3, rng: Optional[random.Random] = None) -> list[Unit]:
    """Two mirrored armies on the outer columns, one shooter per side."""
    rng = rng or random.Random()
    units = []
    rows = [1, 3, 5, 7, 9, 2, 8][:n_slots]
    for side, x in ((geometry.ATTACKER, 2), (geometry.DEFENDER, 14)):
        for slot, y in enumerate(rows):
            shooter = slot == 0
            units.append(make_unit(
                unit_id=len(units),
                side=side,
                slot=slot,
                x=x,
                y=y,
                quantity=rng.randint(5, 20),
                speed=rng.randint(3, 7),
                shots=10 if shooter else 0,
                ranged_dmg_min=2 if shooter else 0,
                ranged_dmg_max=3 if shooter else 0,
                double_wide=slot == 2,
            ))
    return units
