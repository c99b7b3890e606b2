"""ANSI text view of a battlefield snapshot (debugging aid)."""

from typing import Optional

from mmai_bridge.data.constants import (
    BF_XMAX, BF_YMAX, N_SLOTS, HexAction, HexState, StackAttr,
)
from mmai_bridge.env.battlefield import Battlefield

RESET = "\033[0m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
DIM = "\033[90m"
BOLD = "\033[1m"

_STACK_COLUMNS = (
    ("Qty", StackAttr.QUANTITY),
    ("Att", StackAttr.ATTACK),
    ("Def", StackAttr.DEFENSE),
    ("Shots", StackAttr.SHOTS),
    ("Melee", (StackAttr.MELEE_DMG_MIN, StackAttr.MELEE_DMG_MAX)),
    ("Ranged", (StackAttr.RANGED_DMG_MIN, StackAttr.RANGED_DMG_MAX)),
    ("HP", StackAttr.HP),
    ("HP left", StackAttr.HP_LEFT),
    ("Speed", StackAttr.SPEED),
    ("Waited", StackAttr.WAITED),
)


def _hex_symbol(bf: Battlefield, i: int, color: bool) -> str:
    hex_ = bf.hexes[i]
    state = hex_.state
    attackable = any(hex_.mask[k] for k in range(HexAction.MOVE))

    if state == HexState.FREE_REACHABLE:
        sym, col = ("x" if attackable else "○"), (YELLOW if attackable else "")
    elif state == HexState.FREE_UNREACHABLE:
        sym, col = "◌", DIM
    elif state == HexState.OBSTACLE:
        sym, col = "▦", DIM
    elif state < HexState.ENEMY_STACK_0:
        slot = state - HexState.FRIENDLY_STACK_0
        sym, col = str(slot + 1), GREEN
        if bf.astack is not None and bf.astack.covers(hex_.bhex):
            col += BOLD
    else:
        slot = state - HexState.ENEMY_STACK_0
        sym, col = str(slot + 1), RED

    if not color or not col:
        return sym
    return f"{col}{sym}{RESET}"


def render_grid(bf: Battlefield, color: bool = True) -> list[str]:
    lines = []
    header = "    " + " ".join(f"{x % 10}" for x in range(1, BF_XMAX + 1))
    lines.append(header)

    for y in range(BF_YMAX):
        cells = [_hex_symbol(bf, x + y * BF_XMAX, color) for x in range(BF_XMAX)]
        # odd rows (1-based even) are shifted left
        indent = " " if y % 2 == 0 else ""
        lines.append(f"{y + 1:>2} {indent}" + " ".join(cells))

    return lines


def render_stacks(bf: Battlefield) -> list[str]:
    lines = []
    names = [f"#{i % N_SLOTS + 1}{'*' if i < N_SLOTS else ''}" for i in range(len(bf.stacks))]
    lines.append(f"{'Stack':<8}" + "".join(f"{n:>8}" for n in names))

    for label, attr in _STACK_COLUMNS:
        row = []
        for stack in bf.stacks:
            if not stack.present:
                row.append("")
            elif isinstance(attr, tuple):
                row.append(f"{stack.attr(attr[0])}-{stack.attr(attr[1])}")
            else:
                row.append(str(stack.attr(attr)))
        lines.append(f"{label:<8}" + "".join(f"{v:>8}" for v in row))

    return lines


def render_ansi(bf: Optional[Battlefield], color: bool = True) -> str:
    """Battlefield grid followed by a stack table (``*`` marks our stacks)."""
    if bf is None:
        return "(no battlefield)"

    lines = []
    if bf.astack is not None:
        lines.append(f"Active: #{bf.astack.slot + 1} (unit {bf.astack.unit_id})")
    else:
        lines.append("Active: none")

    lines.extend(render_grid(bf, color))
    lines.append("")
    lines.extend(render_stacks(bf))
    return "\n".join(lines)
