"""Observation/action space constants for the MMAI battle bridge.

Every number here is part of the contract with the agent: the encoder and
the decoder both read from this module so they cannot drift apart.
"""

from enum import IntEnum

# Battlefield geometry. The engine grid is 17x11; columns 0 and 16 are
# unusable "side" columns and are not part of the observation.
BFIELD_WIDTH = 17
BFIELD_HEIGHT = 11
BF_XMAX = BFIELD_WIDTH - 2   # 15
BF_YMAX = BFIELD_HEIGHT      # 11
BF_SIZE = BF_XMAX * BF_YMAX  # 165

N_SLOTS = 7                  # army slots per side
N_STACKS = 2 * N_SLOTS       # 0..6 = ours, 7..13 = theirs


class HexState(IntEnum):
    """Accessibility classification of one hex (encoded as its int value)."""
    FREE_REACHABLE = 0
    FREE_UNREACHABLE = 1
    OBSTACLE = 2
    FRIENDLY_STACK_0 = 3
    FRIENDLY_STACK_1 = 4
    FRIENDLY_STACK_2 = 5
    FRIENDLY_STACK_3 = 6
    FRIENDLY_STACK_4 = 7
    FRIENDLY_STACK_5 = 8
    FRIENDLY_STACK_6 = 9
    ENEMY_STACK_0 = 10
    ENEMY_STACK_1 = 11
    ENEMY_STACK_2 = 12
    ENEMY_STACK_3 = 13
    ENEMY_STACK_4 = 14
    ENEMY_STACK_5 = 15
    ENEMY_STACK_6 = 16


N_HEX_STATES = len(HexState)


class NonHexAction(IntEnum):
    RETREAT = 0
    DEFEND = 1
    WAIT = 2


class HexAction(IntEnum):
    """Per-hex sub-actions. Values 0..6 double as the attacked enemy slot."""
    MOVE_AND_ATTACK_0 = 0
    MOVE_AND_ATTACK_1 = 1
    MOVE_AND_ATTACK_2 = 2
    MOVE_AND_ATTACK_3 = 3
    MOVE_AND_ATTACK_4 = 4
    MOVE_AND_ATTACK_5 = 5
    MOVE_AND_ATTACK_6 = 6
    MOVE = 7


N_NONHEX_ACTIONS = len(NonHexAction)  # 3
N_HEX_ACTIONS = len(HexAction)        # 8
N_ACTIONS = 1323                      # 3 + 165 * 8

ACTION_RETREAT = int(NonHexAction.RETREAT)
ACTION_DEFEND = int(NonHexAction.DEFEND)
ACTION_WAIT = int(NonHexAction.WAIT)

# Control actions (not part of the regular action space)
ACTION_RESET = -1
ACTION_RENDER_ANSI = -2
CONTROL_ACTIONS = (ACTION_RESET, ACTION_RENDER_ANSI)


class StackAttr(IntEnum):
    QUANTITY = 0
    ATTACK = 1
    DEFENSE = 2
    SHOTS = 3
    MELEE_DMG_MIN = 4
    MELEE_DMG_MAX = 5
    RANGED_DMG_MIN = 6
    RANGED_DMG_MAX = 7
    HP = 8
    HP_LEFT = 9
    SPEED = 10
    WAITED = 11


# (min, max) used when normalizing each attribute
STACK_ATTR_BOUNDS = {
    StackAttr.QUANTITY: (0, 5000),
    StackAttr.ATTACK: (0, 100),
    StackAttr.DEFENSE: (0, 100),
    StackAttr.SHOTS: (0, 24),
    StackAttr.MELEE_DMG_MIN: (0, 100),
    StackAttr.MELEE_DMG_MAX: (0, 100),
    StackAttr.RANGED_DMG_MIN: (0, 100),
    StackAttr.RANGED_DMG_MAX: (0, 100),
    StackAttr.HP: (0, 1500),
    StackAttr.HP_LEFT: (0, 1500),
    StackAttr.SPEED: (0, 30),
    StackAttr.WAITED: (0, 1),
}

N_STACK_ATTRS = len(StackAttr)  # 12

HEX_STATE_BOUNDS = (0, N_HEX_STATES - 1)
ACTIVE_SLOT_BOUNDS = (0, N_SLOTS - 1)

# State: 165 hex states + 14 stacks * 12 attrs + active slot
STATE_SIZE = 334


class ErrType(IntEnum):
    ALREADY_WAITED = 0
    MOVE_SELF = 1
    HEX_UNREACHABLE = 2
    HEX_BLOCKED = 3
    STACK_NA = 4
    STACK_DEAD = 5
    STACK_INVALID = 6
    MOVE_SHOOT = 7
    ATTACK_IMPOSSIBLE = 8


# ErrType -> (bit, name, message)
ERRORS = {
    ErrType.ALREADY_WAITED: (1 << 0, "ERR_ALREADY_WAITED", "already waited this turn"),
    ErrType.MOVE_SELF: (1 << 1, "ERR_MOVE_SELF", "cannot move to self unless attacking"),
    ErrType.HEX_UNREACHABLE: (1 << 2, "ERR_HEX_UNREACHABLE", "target hex is unreachable"),
    ErrType.HEX_BLOCKED: (1 << 3, "ERR_HEX_BLOCKED", "target hex is blocked"),
    ErrType.STACK_NA: (1 << 4, "ERR_STACK_NA", "target stack does not exist"),
    ErrType.STACK_DEAD: (1 << 5, "ERR_STACK_DEAD", "target stack is dead"),
    ErrType.STACK_INVALID: (1 << 6, "ERR_STACK_INVALID", "target stack is invalid (turret?)"),
    ErrType.MOVE_SHOOT: (1 << 7, "ERR_MOVE_SHOOT", "cannot move and shoot"),
    ErrType.ATTACK_IMPOSSIBLE: (1 << 8, "ERR_ATTACK_IMPOSSIBLE", "melee attack not possible"),
}


def err_flag(err: ErrType) -> int:
    return ERRORS[err][0]


assert BF_SIZE == 165
assert N_NONHEX_ACTIONS + BF_SIZE * N_HEX_ACTIONS == N_ACTIONS
assert BF_SIZE + N_STACKS * N_STACK_ATTRS + 1 == STATE_SIZE
assert set(STACK_ATTR_BOUNDS) == set(StackAttr)
