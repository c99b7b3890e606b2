"""Action codec: integer index <-> (non-hex action | hex + sub-action).

Index layout (same as the exported action mask):

  [0, 3)            retreat, defend, wait
  [3, 3 + 165 * 8)  hex = (i - 3) // 8, sub-action = (i - 3) % 8
"""

from dataclasses import dataclass
from typing import Optional

from mmai_bridge.data.constants import (
    BF_SIZE, N_ACTIONS, N_HEX_ACTIONS, N_NONHEX_ACTIONS, N_SLOTS,
    HexAction, NonHexAction,
)
from mmai_bridge.env import geometry
from mmai_bridge.env.errors import ProtocolError


@dataclass(frozen=True)
class DecodedAction:
    index: int
    nonhex: Optional[NonHexAction] = None
    hex_id: Optional[int] = None
    hexaction: Optional[HexAction] = None

    @property
    def is_hex(self) -> bool:
        return self.hex_id is not None

    @property
    def target_slot(self) -> Optional[int]:
        """Attacked enemy slot for MOVE_AND_ATTACK_k, else None."""
        if self.hexaction is None or self.hexaction == HexAction.MOVE:
            return None
        return int(self.hexaction)


class ActionCodec:
    """Bidirectional mapping over the flat action index space."""

    def __init__(self, n_hexes: int = BF_SIZE, n_hex_actions: int = N_HEX_ACTIONS,
                 n_nonhex: int = N_NONHEX_ACTIONS):
        self.n_hexes = n_hexes
        self.n_hex_actions = n_hex_actions
        self.n_nonhex = n_nonhex
        self.n_actions = n_nonhex + n_hexes * n_hex_actions

        if self.n_actions != N_ACTIONS:
            raise ProtocolError(
                f"Action space mismatch: {n_nonhex} + {n_hexes} * {n_hex_actions}"
                f" = {self.n_actions} != {N_ACTIONS}"
            )
        if n_nonhex != len(NonHexAction) or n_hex_actions != len(HexAction):
            raise ProtocolError("Action enums out of sync with codec dimensions")

    def encode_nonhex(self, action: NonHexAction) -> int:
        return int(action)

    def encode_hex(self, hex_id: int, hexaction: HexAction) -> int:
        if not 0 <= hex_id < self.n_hexes:
            raise ValueError(f"Hex id out of range: {hex_id}")
        return self.n_nonhex + hex_id * self.n_hex_actions + int(hexaction)

    def decode(self, index: int) -> DecodedAction:
        # Control actions (<0) must never reach here
        if not 0 <= index < self.n_actions:
            raise ProtocolError(f"Invalid action: {index}")

        i = index - self.n_nonhex
        if i < 0:
            return DecodedAction(index, nonhex=NonHexAction(index))

        return DecodedAction(
            index,
            hex_id=i // self.n_hex_actions,
            hexaction=HexAction(i % self.n_hex_actions),
        )

    def name(self, index: int) -> str:
        action = self.decode(index)

        if not action.is_hex:
            return action.nonhex.name.capitalize()

        res = "Move to " + geometry.hex_name(action.hex_id)
        if action.target_slot is not None:
            res += f" and attack #{action.target_slot + 1}"
        return res


assert N_SLOTS == HexAction.MOVE, "attack sub-actions must map 1:1 to enemy slots"
