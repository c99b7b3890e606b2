"""Decision bridge: synchronous rendezvous between the host and the agent.

The host's turn thread calls ``on_active_unit()``, which publishes an
observation and blocks until the agent answers through ``act()``. Invalid
actions are reported back through a fresh observation for the same turn,
so ``on_active_unit()`` only ever returns a validated command.

Observations are never queued: before publishing, the host waits until the
agent has observed the previous one (e.g. the terminal observation of the
last battle). Any exception on the host side poisons the bridge, so a
blocked agent is woken with the error instead of hanging.

  host thread                       agent thread
  -----------                       ------------
  on_active_unit(view) ──publish──> observe()
        (blocked)      <──index──── act(index)
  validate -> command
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Hashable, Optional, Protocol

import numpy as np

from mmai_bridge.data.constants import (
    ACTION_RENDER_ANSI, ACTION_RESET, N_ACTIONS, STATE_SIZE,
)
from mmai_bridge.env.action_codec import ActionCodec
from mmai_bridge.env.action_result import build_action_result
from mmai_bridge.env.battlefield import Battlefield
from mmai_bridge.env.errors import ProtocolError
from mmai_bridge.env.host import AttackLog, EngineCommand, HostView
from mmai_bridge.env.render import render_ansi

logger = logging.getLogger(__name__)


class BridgeState(Enum):
    IDLE = "idle"
    AWAITING_ACTION = "awaiting_action"


@dataclass(frozen=True)
class AttackStats:
    """Damage exchanged since the previous observation."""
    dmg_dealt: int = 0
    dmg_received: int = 0
    units_lost: int = 0
    units_killed: int = 0
    value_lost: int = 0
    value_killed: int = 0

    @classmethod
    def collect(cls, logs: list[AttackLog]) -> "AttackStats":
        kw = dict.fromkeys(cls.__dataclass_fields__, 0)
        for log in logs:
            if log.our_unit_attacked:
                kw["dmg_received"] += log.dmg
                kw["units_lost"] += log.units
                kw["value_lost"] += log.value
            else:
                kw["dmg_dealt"] += log.dmg
                kw["units_killed"] += log.units
                kw["value_killed"] += log.value
        return cls(**kw)

    def __add__(self, other: "AttackStats") -> "AttackStats":
        return AttackStats(*(getattr(self, k) + getattr(other, k) for k in self.__dataclass_fields__))


@dataclass(frozen=True)
class Observation:
    """What the agent sees for one decision (or the battle's end)."""
    state: np.ndarray                     # (STATE_SIZE,) float32
    mask: np.ndarray                      # (N_ACTIONS,) bool
    errmask: int = 0
    errmsgs: tuple[str, ...] = ()
    stats: AttackStats = field(default_factory=AttackStats)
    ended: bool = False
    victory: bool = False


class AgentChannel(Protocol):
    """The two operations an agent needs."""

    def observe(self, timeout: Optional[float] = None) -> Observation: ...

    def act(self, index: int) -> None: ...


class DecisionBridge:
    """One bridge per controlled army; reused across consecutive battles.

    Args:
        reset_hook: called (on the agent's thread) for ``ACTION_RESET``.
        color: use ANSI colours for ``ACTION_RENDER_ANSI``.
    """

    def __init__(self, reset_hook: Optional[Callable[[], None]] = None, color: bool = True):
        self.codec = ActionCodec()
        self.reset_hook = reset_hook
        self.color = color

        self._cond = threading.Condition()
        self._state = BridgeState.IDLE
        self._error: Optional[ProtocolError] = None

        self._battle_id: Optional[Hashable] = None
        self._bf: Optional[Battlefield] = None
        self._attacks: list[AttackLog] = []

        self._obs: Optional[Observation] = None
        self._obs_seq = 0
        self._seen_seq = 0
        self._action: Optional[int] = None
        self._rendered: Optional[str] = None

        self.invalid_actions = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def battle_id(self) -> Optional[Hashable]:
        return self._battle_id

    @property
    def battlefield(self) -> Optional[Battlefield]:
        return self._bf

    # ------------------------------------------------------------------
    # Host side
    # ------------------------------------------------------------------

    def start_battle(self, battle_id: Hashable):
        """Register for a battle. Repeated calls for the same id are no-ops."""
        with self._cond:
            self._check()
            if battle_id == self._battle_id:
                logger.debug("Battle %s already started", battle_id)
                return
            if self._state != BridgeState.IDLE:
                self._fail(f"Battle {battle_id} started while a decision is pending")

            self._battle_id = battle_id
            self._bf = None
            self._attacks = []
            self._rendered = None
            self.invalid_actions = 0
            logger.info("Battle %s started", battle_id)

    def record_attack(self, log: AttackLog):
        with self._cond:
            self._attacks.append(log)

    def on_active_unit(self, view: HostView) -> EngineCommand:
        """Publish the active unit's snapshot and block until a valid action."""
        with self._cond:
            self._check()
            if self._state != BridgeState.IDLE:
                self._fail("Second decision published while one is outstanding")
            if self._battle_id is None:
                self._fail("on_active_unit() called outside a battle")
            self._wait_seen()

            try:
                bf = Battlefield.build(view)
                self._bf = bf
                self._state = BridgeState.AWAITING_ACTION
                self._publish(bf)

                while True:
                    self._cond.wait_for(lambda: self._action is not None or self._error is not None)
                    self._check()

                    index, self._action = self._action, None
                    res = build_action_result(self.codec.decode(index), bf, view)

                    if res.ok:
                        logger.debug("Action %d: %s", index, self.codec.name(index))
                        self._state = BridgeState.IDLE
                        return res.command

                    self.invalid_actions += 1
                    logger.warning(
                        "Invalid action %d (%s): %s",
                        index, self.codec.name(index), "; ".join(res.errmsgs),
                    )
                    self._publish(bf, res.errmask, tuple(res.errmsgs))
            except Exception as e:
                self._host_failure(e)

    def end_battle(self, victory: bool, view: Optional[HostView] = None):
        """Publish a terminal observation and unregister from the battle."""
        with self._cond:
            self._check()
            if self._state != BridgeState.IDLE:
                self._fail("Battle ended while a decision is pending")
            self._wait_seen()

            try:
                bf = Battlefield.off_turn(view) if view is not None else None
            except Exception as e:
                self._host_failure(e)

            self._bf = bf
            self._publish(bf, ended=True, victory=victory)

            logger.info(
                "Battle %s ended: %s (%d invalid actions)",
                self._battle_id, "victory" if victory else "defeat", self.invalid_actions,
            )
            self._battle_id = None

    # ------------------------------------------------------------------
    # Agent side
    # ------------------------------------------------------------------

    def observe(self, timeout: Optional[float] = None) -> Observation:
        """Block until an observation the agent has not seen yet exists."""
        with self._cond:
            ready = self._cond.wait_for(
                lambda: self._error is not None or self._obs_seq > self._seen_seq,
                timeout,
            )
            self._check()
            if not ready:
                raise TimeoutError(f"No observation within {timeout}s")

            self._seen_seq = self._obs_seq
            self._cond.notify_all()
            return self._obs

    def act(self, index: int):
        if index == ACTION_RESET:
            self._check_locked()
            logger.info("Reset requested")
            if self.reset_hook is not None:
                self.reset_hook()
            return

        with self._cond:
            self._check()

            if index == ACTION_RENDER_ANSI:
                self._rendered = render_ansi(self._bf, self.color)
                return

            if not 0 <= index < N_ACTIONS:
                self._fail(f"Invalid action: {index}")
            if self._action is not None:
                self._fail(f"Action {index} sent before action {self._action} was consumed")
            if self._state != BridgeState.AWAITING_ACTION:
                self._fail(f"Action {index} sent with no decision pending")
            if self._seen_seq != self._obs_seq:
                self._fail(f"Action {index} sent without observing the latest state")

            self._action = index
            self._cond.notify_all()

    def render(self) -> Optional[str]:
        """Text stored by the last ``ACTION_RENDER_ANSI`` request."""
        with self._cond:
            return self._rendered

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _publish(self, bf: Optional[Battlefield], errmask: int = 0,
                 errmsgs: tuple[str, ...] = (), ended: bool = False, victory: bool = False):
        if bf is not None:
            state, mask = bf.state_vector(), bf.export_action_mask()
        else:
            state = np.full(STATE_SIZE, -1.0, dtype=np.float32)
            mask = np.zeros(N_ACTIONS, dtype=bool)

        stats = AttackStats.collect(self._attacks)
        self._attacks = []

        self._obs = Observation(state, mask, errmask, errmsgs, stats, ended, victory)
        self._obs_seq += 1
        self._cond.notify_all()

    def _check(self):
        if self._error is not None:
            raise self._error

    def _check_locked(self):
        with self._cond:
            self._check()

    def _poison(self, error: ProtocolError):
        logger.error("Protocol error: %s", error)
        self._error = error
        self._cond.notify_all()

    def _fail(self, msg: str, cause: Optional[BaseException] = None):
        error = ProtocolError(msg)
        self._poison(error)
        if cause is not None:
            raise error from cause
        raise error

    def _host_failure(self, e: Exception):
        """Poison the bridge with a host-side failure so the agent sees it too."""
        if e is self._error:
            raise e
        if isinstance(e, ProtocolError):
            self._poison(e)
            raise e
        self._fail(f"Host-side failure: {e!r}", cause=e)

    def _wait_seen(self):
        # the previous observation (e.g. a terminal one) reaches the agent first
        self._cond.wait_for(lambda: self._error is not None or self._seen_seq == self._obs_seq)
        self._check()
