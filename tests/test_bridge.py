"""Tests for the decision bridge rendezvous."""

import threading

import numpy as np
import pytest

from mmai_bridge.data.constants import (
    ACTION_DEFEND, ACTION_RENDER_ANSI, ACTION_RESET, ACTION_WAIT, N_ACTIONS, STATE_SIZE,
    ErrType, HexAction, err_flag,
)
from mmai_bridge.env.bridge import AttackStats, BridgeState, DecisionBridge
from mmai_bridge.env.errors import ProtocolError
from mmai_bridge.env.geometry import ATTACKER, DEFENDER, bhex, hex_id
from mmai_bridge.env.host import AttackLog, CommandKind
from mmai_bridge.env.sandbox import make_unit

TIMEOUT = 5.0


class HostThread(threading.Thread):
    """Calls ``on_active_unit`` once, keeping the command or the exception."""

    def __init__(self, bridge, view):
        super().__init__(daemon=True)
        self.bridge = bridge
        self.view = view
        self.command = None
        self.error = None

    def run(self):
        try:
            self.command = self.bridge.on_active_unit(self.view)
        except Exception as e:
            self.error = e


@pytest.fixture
def bridge():
    b = DecisionBridge(color=False)
    b.start_battle("b1")
    return b


def start_host(bridge, view):
    host = HostThread(bridge, view)
    host.start()
    return host


# =============================================================================
# Rendezvous
# =============================================================================


class TestDecision:

    def test_round_trip(self, bridge, melee_battle):
        host = start_host(bridge, melee_battle)
        obs = bridge.observe(timeout=TIMEOUT)

        assert bridge.state == BridgeState.AWAITING_ACTION
        assert obs.state.shape == (STATE_SIZE,)
        assert obs.mask.shape == (N_ACTIONS,)
        assert obs.errmask == 0
        assert not obs.ended

        bridge.act(ACTION_DEFEND)
        host.join(TIMEOUT)

        assert host.error is None
        assert host.command.kind == CommandKind.DEFEND
        assert bridge.state == BridgeState.IDLE

    def test_observation_matches_snapshot(self, bridge, melee_battle):
        host = start_host(bridge, melee_battle)
        obs = bridge.observe(timeout=TIMEOUT)
        bf = bridge.battlefield

        np.testing.assert_array_equal(obs.state, bf.state_vector())
        np.testing.assert_array_equal(obs.mask, bf.export_action_mask())

        bridge.act(ACTION_DEFEND)
        host.join(TIMEOUT)

    def test_invalid_action_is_retried(self, bridge, make_battle):
        battle = make_battle(make_unit(1, ATTACKER, 0, 5, 5, waited=True), make_unit(2, DEFENDER, 2, 10, 5))
        host = start_host(bridge, battle)

        bridge.observe(timeout=TIMEOUT)
        bridge.act(ACTION_WAIT)

        retry = bridge.observe(timeout=TIMEOUT)
        assert retry.errmask == err_flag(ErrType.ALREADY_WAITED)
        assert retry.errmsgs and "ALREADY_WAITED" in retry.errmsgs[0]
        assert host.is_alive()
        assert bridge.invalid_actions == 1

        bridge.act(ACTION_DEFEND)
        host.join(TIMEOUT)
        assert host.command.kind == CommandKind.DEFEND

    def test_observe_timeout(self, bridge):
        with pytest.raises(TimeoutError):
            bridge.observe(timeout=0.01)

    def test_sequential_decisions(self, bridge, melee_battle):
        for _ in range(3):
            host = start_host(bridge, melee_battle)
            bridge.observe(timeout=TIMEOUT)
            bridge.act(ACTION_DEFEND)
            host.join(TIMEOUT)
            assert host.command is not None


# =============================================================================
# Protocol violations
# =============================================================================


class TestProtocolViolations:

    def test_second_publish(self, bridge, melee_battle):
        host = start_host(bridge, melee_battle)
        bridge.observe(timeout=TIMEOUT)

        with pytest.raises(ProtocolError, match="outstanding"):
            bridge.on_active_unit(melee_battle)

        # the pending host is woken up with the same error
        host.join(TIMEOUT)
        assert isinstance(host.error, ProtocolError)

    def test_poisoned(self, bridge, melee_battle):
        with pytest.raises(ProtocolError):
            bridge.act(ACTION_DEFEND)
        with pytest.raises(ProtocolError):
            bridge.observe(timeout=0.01)
        with pytest.raises(ProtocolError):
            bridge.on_active_unit(melee_battle)

    def test_act_without_decision(self, bridge):
        with pytest.raises(ProtocolError, match="no decision pending"):
            bridge.act(ACTION_DEFEND)

    def test_double_act(self, bridge, melee_battle):
        host = start_host(bridge, melee_battle)
        bridge.observe(timeout=TIMEOUT)
        bridge.act(ACTION_DEFEND)
        with pytest.raises(ProtocolError):
            bridge.act(ACTION_DEFEND)
        host.join(TIMEOUT)

    def test_act_before_observing_retry(self, bridge, make_battle):
        battle = make_battle(make_unit(1, ATTACKER, 0, 5, 5, waited=True), make_unit(2, DEFENDER, 2, 10, 5))
        host = start_host(bridge, battle)
        bridge.observe(timeout=TIMEOUT)
        bridge.act(ACTION_WAIT)

        with pytest.raises(ProtocolError):
            bridge.act(ACTION_DEFEND)
        host.join(TIMEOUT)
        assert isinstance(host.error, ProtocolError)

    @pytest.mark.parametrize("index", [-3, N_ACTIONS])
    def test_index_out_of_range(self, bridge, melee_battle, index):
        host = start_host(bridge, melee_battle)
        bridge.observe(timeout=TIMEOUT)
        with pytest.raises(ProtocolError, match="Invalid action"):
            bridge.act(index)
        host.join(TIMEOUT)
        assert isinstance(host.error, ProtocolError)

    def test_enemy_turn(self, bridge, melee_battle):
        melee_battle.activate(2)
        with pytest.raises(ProtocolError, match="not ours"):
            bridge.on_active_unit(melee_battle)
        with pytest.raises(ProtocolError):
            bridge.observe(timeout=0.01)

    def test_outside_battle(self, melee_battle):
        bridge = DecisionBridge()
        with pytest.raises(ProtocolError, match="outside a battle"):
            bridge.on_active_unit(melee_battle)


# =============================================================================
# Control actions
# =============================================================================


class TestControlActions:

    def test_render_keeps_decision_pending(self, bridge, melee_battle):
        host = start_host(bridge, melee_battle)
        bridge.observe(timeout=TIMEOUT)

        bridge.act(ACTION_RENDER_ANSI)
        text = bridge.render()
        assert "Active: #1" in text
        assert bridge.state == BridgeState.AWAITING_ACTION
        assert host.is_alive()

        bridge.act(ACTION_DEFEND)
        host.join(TIMEOUT)
        assert host.command.kind == CommandKind.DEFEND

    def test_render_without_battlefield(self, bridge):
        bridge.act(ACTION_RENDER_ANSI)
        assert bridge.render() == "(no battlefield)"

    def test_reset_calls_hook(self, bridge, melee_battle):
        calls = []
        bridge.reset_hook = lambda: calls.append(1)

        host = start_host(bridge, melee_battle)
        bridge.observe(timeout=TIMEOUT)
        bridge.act(ACTION_RESET)
        assert calls == [1]
        assert bridge.state == BridgeState.AWAITING_ACTION

        bridge.act(ACTION_DEFEND)
        host.join(TIMEOUT)
        assert host.command is not None

    def test_reset_without_hook(self, bridge):
        bridge.act(ACTION_RESET)
        assert bridge.state == BridgeState.IDLE


# =============================================================================
# Battle lifecycle
# =============================================================================


class TestLifecycle:

    def test_start_is_idempotent(self, bridge):
        bridge.start_battle("b1")
        assert bridge.battle_id == "b1"

    def test_restart_while_pending(self, bridge, melee_battle):
        host = start_host(bridge, melee_battle)
        bridge.observe(timeout=TIMEOUT)
        bridge.start_battle("b1")
        with pytest.raises(ProtocolError):
            bridge.start_battle("b2")
        host.join(TIMEOUT)

    def test_terminal_observation(self, bridge, melee_battle):
        melee_battle.activate(None)
        bridge.end_battle(True, melee_battle)
        obs = bridge.observe(timeout=TIMEOUT)

        assert obs.ended
        assert obs.victory
        assert obs.state.shape == (STATE_SIZE,)
        assert not obs.mask.any()
        assert bridge.battle_id is None

    def test_terminal_observation_without_view(self, bridge):
        bridge.end_battle(False)
        obs = bridge.observe(timeout=TIMEOUT)
        assert obs.ended and not obs.victory
        assert (obs.state == -1.0).all()

    def test_attack_stats(self, bridge):
        bridge.record_attack(AttackLog(0, 2, False, dmg=30, units=2, value=100))
        bridge.record_attack(AttackLog(2, 0, True, dmg=10, units=1, value=50))
        bridge.record_attack(AttackLog(1, 3, False, dmg=5, units=0, value=0))
        bridge.end_battle(False)

        stats = bridge.observe(timeout=TIMEOUT).stats
        assert stats == AttackStats(
            dmg_dealt=35, dmg_received=10,
            units_lost=1, units_killed=2,
            value_lost=50, value_killed=100,
        )

    def test_attack_stats_are_per_observation(self, bridge, melee_battle):
        bridge.record_attack(AttackLog(0, 2, False, dmg=30, units=2, value=100))
        host = start_host(bridge, melee_battle)
        assert bridge.observe(timeout=TIMEOUT).stats.dmg_dealt == 30
        bridge.act(ACTION_DEFEND)
        host.join(TIMEOUT)

        bridge.end_battle(True)
        assert bridge.observe(timeout=TIMEOUT).stats == AttackStats()

    def test_stats_add(self):
        a = AttackStats(dmg_dealt=1, value_lost=2)
        assert (a + a) == AttackStats(dmg_dealt=2, value_lost=4)

    def test_terminal_observation_is_not_overwritten(self, bridge, melee_battle):
        bridge.end_battle(True)
        bridge.start_battle("b2")
        host = start_host(bridge, melee_battle)

        # the next battle's first decision waits for the terminal observation
        host.join(0.2)
        assert host.is_alive()
        assert bridge.state == BridgeState.IDLE

        first = bridge.observe(timeout=TIMEOUT)
        assert first.ended and first.victory

        second = bridge.observe(timeout=TIMEOUT)
        assert not second.ended
        bridge.act(ACTION_DEFEND)
        host.join(TIMEOUT)
        assert host.command.kind == CommandKind.DEFEND


# =============================================================================
# Host-side failures
# =============================================================================


class BrokenView:
    """Delegates to a sandbox battle, but fails on the given query."""

    def __init__(self, battle, broken):
        self._battle = battle
        self._broken = broken

    def __getattr__(self, name):
        if name == self._broken:
            return self._raise
        return getattr(self._battle, name)

    def _raise(self, *args, **kwargs):
        raise RuntimeError(f"{self._broken} failed")


class TestHostFailures:

    def test_validation_failure_reaches_agent(self, bridge, melee_battle):
        view = BrokenView(melee_battle, "is_melee_possible")
        host = start_host(bridge, view)
        bridge.observe(timeout=TIMEOUT)

        # masked-out melee from a reachable hex asks the host, which fails
        bridge.act(bridge.codec.encode_hex(hex_id(bhex(6, 5)), HexAction.MOVE_AND_ATTACK_2))
        host.join(TIMEOUT)

        assert isinstance(host.error, ProtocolError)
        assert isinstance(host.error.__cause__, RuntimeError)
        with pytest.raises(ProtocolError, match="Host-side failure"):
            bridge.observe(timeout=TIMEOUT)

    def test_terminal_snapshot_failure_reaches_agent(self, bridge, melee_battle):
        view = BrokenView(melee_battle, "units")
        with pytest.raises(ProtocolError, match="Host-side failure"):
            bridge.end_battle(True, view)
        with pytest.raises(ProtocolError):
            bridge.observe(timeout=TIMEOUT)
