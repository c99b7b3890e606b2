"""Result validator: decoded action -> engine command or error set."""

import logging
from typing import Optional

from mmai_bridge.data.constants import ERRORS, ErrType, HexAction, HexState, NonHexAction
from mmai_bridge.env.action_codec import DecodedAction
from mmai_bridge.env.battlefield import Battlefield
from mmai_bridge.env.host import EngineCommand, HostView

logger = logging.getLogger(__name__)


class ActionResult:
    """Either a command or a non-zero error mask, never both."""

    def __init__(self):
        self.command: Optional[EngineCommand] = None
        self.errmask = 0
        self.errmsgs: list[str] = []

    @property
    def ok(self) -> bool:
        return self.command is not None

    def set_command(self, command: EngineCommand):
        if self.errmask:
            return
        if self.command is not None:
            raise RuntimeError(f"Command already set: {self.command}")
        self.command = command

    def add_error(self, err: ErrType):
        flag, name, msg = ERRORS[err]
        self.errmask |= flag
        self.errmsgs.append(f"({name}) {msg}")
        self.command = None

    def has_error(self, err: ErrType) -> bool:
        return bool(self.errmask & ERRORS[err][0])

    def __repr__(self):
        if self.ok:
            return f"ActionResult(command={self.command})"
        return f"ActionResult(errmask={self.errmask:#06x}, errmsgs={self.errmsgs})"


def build_action_result(action: DecodedAction, bf: Battlefield, view: HostView) -> ActionResult:
    """Validate ``action`` against the snapshot it was chosen from.

    Masked-in actions become commands directly. Masked-out actions are
    diagnosed so the agent learns why it was rejected.
    """
    res = ActionResult()
    astack = bf.astack
    if astack is None:
        raise RuntimeError("Cannot validate an action without an active unit")

    if not action.is_hex:
        if action.nonhex == NonHexAction.RETREAT:
            res.set_command(EngineCommand.retreat(bf.my_side))
        elif action.nonhex == NonHexAction.DEFEND:
            res.set_command(EngineCommand.defend(astack))
        elif action.nonhex == NonHexAction.WAIT:
            if astack.waited:
                res.add_error(ErrType.ALREADY_WAITED)
            else:
                res.set_command(EngineCommand.wait(astack))
        else:
            raise RuntimeError(f"Unexpected non-hex action: {action.nonhex!r}")
        return res

    hex_ = bf.hexes[action.hex_id]
    bh = hex_.bhex
    destself = bh == astack.position
    canshoot = view.can_shoot(astack)

    if hex_.can(action.hexaction):
        # Action is VALID
        if action.hexaction == HexAction.MOVE:
            res.set_command(EngineCommand.move(astack, bh))
        else:
            estack = bf.enemy_stack(action.target_slot)
            if estack is None:
                raise RuntimeError(f"Mask allows attacking empty slot {action.target_slot}")
            if destself and canshoot:
                res.set_command(EngineCommand.shoot(astack, estack))
            else:
                res.set_command(EngineCommand.melee(astack, estack, bh))
        return res

    # Action is INVALID
    if action.hexaction == HexAction.MOVE:
        if hex_.state == HexState.FREE_REACHABLE:
            raise RuntimeError(f"Mask prevents move to reachable hex {hex_.name}")
        if destself:
            res.add_error(ErrType.MOVE_SELF)
        if hex_.state == HexState.FREE_UNREACHABLE:
            res.add_error(ErrType.HEX_UNREACHABLE)
        else:
            res.add_error(ErrType.HEX_BLOCKED)
    else:
        estack = bf.enemy_stack(action.target_slot)
        if estack is None:
            res.add_error(ErrType.STACK_NA)
            return res

        can_go_there = hex_.can(HexAction.MOVE)

        if destself:
            res.add_error(ErrType.ATTACK_IMPOSSIBLE)
        elif can_go_there:
            if canshoot:
                res.add_error(ErrType.MOVE_SHOOT)
            else:
                # the mask decides; the host may still see a back-hex contact
                if view.is_melee_possible(astack, estack, bh):
                    logger.debug("Host allows melee from %s but it is masked out", hex_.name)
                res.add_error(ErrType.ATTACK_IMPOSSIBLE)
        elif hex_.state == HexState.FREE_UNREACHABLE:
            res.add_error(ErrType.HEX_UNREACHABLE)
        else:
            res.add_error(ErrType.HEX_BLOCKED)

        if not estack.alive:
            res.add_error(ErrType.STACK_DEAD)
        if not estack.valid_target:
            res.add_error(ErrType.STACK_INVALID)

    if not res.errmask:
        raise RuntimeError(f"Failed to identify the errors of action {action.index}")

    logger.debug("Invalid action %d: %s", action.index, res.errmsgs)
    return res
