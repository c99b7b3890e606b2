"""Battlefield snapshot: one immutable frame per decision.

Composes the hex and stack encoders and exports the two arrays handed to
the agent:

  state (STATE_SIZE,) float32:
      hex states(165) + stacks(14 x 12) + active slot(1) = 334
  action mask (N_ACTIONS,) bool:
      retreat, defend, wait + hexes(165 x 8) = 1323
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from mmai_bridge.data.constants import (
    ACTIVE_SLOT_BOUNDS, BF_SIZE, HEX_STATE_BOUNDS, N_ACTIONS, N_SLOTS,
    N_STACKS, N_STACK_ATTRS, STATE_SIZE, NonHexAction,
)
from mmai_bridge.env import geometry
from mmai_bridge.env.errors import ProtocolError
from mmai_bridge.env.hex_encoder import Hex, encode_hexes
from mmai_bridge.env.host import HostView, Unit
from mmai_bridge.env.nvalue import NormalizedValue, nvalue
from mmai_bridge.env.stack_encoder import Stack, encode_stacks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Battlefield:
    """Sole source of truth for one decision round."""
    my_side: int
    astack: Optional[Unit]       # None for off-turn (terminal) frames
    hexes: tuple[Hex, ...]
    stacks: tuple[Stack, ...]

    @classmethod
    def build(cls, view: HostView) -> "Battlefield":
        """On-turn snapshot for the engine's active unit."""
        astack = view.active_unit()
        if astack is None:
            raise ProtocolError("Battlefield.build() called without an active unit")
        if astack.side != view.my_side:
            raise ProtocolError(f"Active unit {astack.unit_id} is not ours")

        stacks = encode_stacks(view)
        hexes = encode_hexes(view, astack)
        logger.debug("Battlefield built for unit %d (slot %d)", astack.unit_id, astack.slot)
        return cls(view.my_side, astack, hexes, stacks)

    @classmethod
    def off_turn(cls, view: HostView) -> "Battlefield":
        """Snapshot between turns (e.g. battle end): nothing is reachable."""
        stacks = encode_stacks(view)
        hexes = encode_hexes(view, None)
        return cls(view.my_side, None, hexes, stacks)

    def __post_init__(self):
        if len(self.hexes) != BF_SIZE:
            raise ProtocolError(f"Unexpected hexes: {len(self.hexes)}")
        if len(self.stacks) != N_STACKS:
            raise ProtocolError(f"Unexpected stacks: {len(self.stacks)}")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def active_slot(self) -> Optional[int]:
        return self.astack.slot if self.astack is not None else None

    def hex_at(self, bh: int) -> Hex:
        return self.hexes[geometry.hex_id(bh)]

    def enemy_stack(self, slot: int) -> Optional[Unit]:
        """Enemy unit in slot 0..6, dead or alive."""
        if not 0 <= slot < N_SLOTS:
            raise ValueError(f"Invalid slot: {slot}")
        return self.stacks[slot + N_SLOTS].unit

    def friendly_stack(self, slot: int) -> Optional[Unit]:
        if not 0 <= slot < N_SLOTS:
            raise ValueError(f"Invalid slot: {slot}")
        return self.stacks[slot].unit

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_state(self) -> tuple[NormalizedValue, ...]:
        res = []

        for hex_ in self.hexes:
            res.append(nvalue(int(hex_.state), HEX_STATE_BOUNDS))

        for stack in self.stacks:
            exported = stack.export()
            if len(exported) != N_STACK_ATTRS:
                raise ProtocolError(f"Stack {stack.index}: {len(exported)} attrs")
            res.extend(exported)

        # active stack
        res.append(nvalue(self.active_slot or 0, ACTIVE_SLOT_BOUNDS))

        if len(res) != STATE_SIZE:
            raise ProtocolError(f"State size mismatch: {len(res)} != {STATE_SIZE}")
        return tuple(res)

    def state_vector(self) -> np.ndarray:
        """(STATE_SIZE,) float32 array of the normalized values."""
        return np.array([v.norm for v in self.export_state()], dtype=np.float32)

    def export_action_mask(self) -> np.ndarray:
        res = np.zeros(N_ACTIONS, dtype=bool)

        if self.astack is not None:
            res[NonHexAction.RETREAT] = True
            res[NonHexAction.DEFEND] = True
            res[NonHexAction.WAIT] = not self.astack.waited

        i = len(NonHexAction)
        for hex_ in self.hexes:
            res[i:i + len(hex_.mask)] = hex_.mask
            i += len(hex_.mask)

        if i != N_ACTIONS:
            raise ProtocolError(f"Action mask size mismatch: {i} != {N_ACTIONS}")
        return res
