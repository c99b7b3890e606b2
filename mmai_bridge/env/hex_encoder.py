"""Hex encoder: 165 cells -> accessibility state + per-hex action mask."""

import logging
from dataclasses import dataclass
from typing import Optional

from mmai_bridge.data.constants import (
    BF_SIZE, BFIELD_HEIGHT, BFIELD_WIDTH, HexAction, HexState, N_HEX_ACTIONS,
)
from mmai_bridge.env import geometry
from mmai_bridge.env.errors import ProtocolError
from mmai_bridge.env.host import Accessibility, HostView, Unit

logger = logging.getLogger(__name__)

MOVE = int(HexAction.MOVE)


@dataclass(frozen=True)
class Hex:
    """One observation cell. ``mask[k]`` follows ``HexAction`` order."""
    id: int
    bhex: int
    state: HexState
    mask: tuple[bool, ...]

    def can(self, hexaction: HexAction) -> bool:
        return self.mask[int(hexaction)]

    @property
    def name(self) -> str:
        return geometry.hex_name(self.id)


class _HexDraft:
    __slots__ = ("id", "bhex", "state", "mask")

    def __init__(self, hid: int, bh: int):
        self.id = hid
        self.bhex = bh
        self.state: Optional[HexState] = None
        self.mask = [False] * N_HEX_ACTIONS

    def freeze(self) -> Hex:
        return Hex(self.id, self.bhex, self.state, tuple(self.mask))


def _classify(draft: _HexDraft, view: HostView, astack: Optional[Unit]):
    """Set state and the MOVE bit from the engine's accessibility info."""
    bh = draft.bhex
    acc = view.accessibility(bh)

    if acc == Accessibility.ACCESSIBLE:
        if astack is not None and view.distance(bh) <= astack.speed:
            draft.state = HexState.FREE_REACHABLE
            draft.mask[MOVE] = True
        else:
            draft.state = HexState.FREE_UNREACHABLE
    elif acc == Accessibility.OBSTACLE:
        draft.state = HexState.OBSTACLE
    elif acc == Accessibility.ALIVE_STACK:
        unit = view.unit_at(bh)
        if unit is None:
            raise ProtocolError(f"ALIVE_STACK but no unit at hex {bh}")
        if not 0 <= unit.slot < 7:
            raise ProtocolError(f"Unexpected slot: {unit.slot}")

        base = HexState.FRIENDLY_STACK_0 if unit.side == view.my_side else HexState.ENEMY_STACK_0
        draft.state = HexState(base + unit.slot)

        # Moving to the "back" hex of a two-hex active stack
        # (xxooxx -> xooxx)
        if (
            astack is not None
            and unit.unit_id == astack.unit_id
            and astack.occupied_hex == bh
            and astack.speed > 0
            and view.accessible_for_double_wide(bh, astack.side)
        ):
            draft.mask[MOVE] = True
    else:
        # DESTRUCTIBLE_WALL, GATE, UNAVAILABLE, SIDE_COLUMN
        raise ProtocolError(f"Unexpected hex accessibility for hex {bh}: {acc!r}")


def _mark_attackable(drafts: list[_HexDraft], view: HostView, astack: Unit):
    """Set MOVE_AND_ATTACK_k bits for every live enemy stack."""
    apos = astack.position
    canshoot = view.can_shoot(astack)
    own = drafts[geometry.hex_id(apos)]

    for estack in view.units():
        if estack.side == view.my_side or not estack.alive or not estack.valid_target:
            continue

        slot = estack.slot

        # A shooter can attack any enemy from where it stands
        if canshoot:
            own.mask[slot] = True
            continue

        # Melee from any surrounding hex we can move to or stand on
        for bh in geometry.surrounding_hexes(estack.position, estack.side, estack.double_wide):
            d = drafts[geometry.hex_id(bh)]
            if d.mask[MOVE] or bh == apos:
                d.mask[slot] = True

        if not astack.double_wide:
            continue

        # A two-hex stack can also attack from one hex further away,
        # touching the enemy with its back hex:
        #
        #  o o o o   o o o o    o A A o
        # o x o o   o x A A o  o x o o o
        #  o A A o   o o o o    o o o o
        #
        directions = geometry.forward_directions(astack.side)
        for direction in directions:
            bh = geometry.neighbour(estack.position, direction)
            if not geometry.is_available(bh):
                continue
            bh = geometry.neighbour(bh, directions[1])
            if not geometry.is_available(bh):
                continue

            d = drafts[geometry.hex_id(bh)]
            if d.mask[MOVE] or bh == apos:
                d.mask[slot] = True


def encode_hexes(view: HostView, astack: Optional[Unit]) -> tuple[Hex, ...]:
    """Encode all 165 usable hexes in row-major order.

    With ``astack=None`` (off-turn) no hex is reachable and all masks stay
    empty.
    """
    drafts = []
    for y in range(BFIELD_HEIGHT):
        # 0 and 16 are unusable "side" hexes => exclude
        for x in range(1, BFIELD_WIDTH - 1):
            bh = geometry.bhex(x, y)
            drafts.append(_HexDraft(geometry.hex_id(bh), bh))

    if len(drafts) != BF_SIZE:
        raise ProtocolError(f"Unexpected hex count: {len(drafts)}")

    for d in drafts:
        _classify(d, view, astack)

    if astack is not None:
        _mark_attackable(drafts, view, astack)

    hexes = tuple(d.freeze() for d in drafts)
    logger.debug(
        "Encoded %d hexes (%d reachable)",
        len(hexes), sum(1 for h in hexes if h.state == HexState.FREE_REACHABLE),
    )
    return hexes
