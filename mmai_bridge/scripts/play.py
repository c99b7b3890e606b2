"""Play sandbox battles with a masked random agent through the bridge.

The sandbox host runs on its own thread and blocks inside the bridge on
every turn of our units; this (main) thread plays the agent.

Usage:
    python -m mmai_bridge.scripts.play
    python -m mmai_bridge.scripts.play --config mmai_bridge/config/default.yaml
    python -m mmai_bridge.scripts.play --sandbox.battles 100 --agent.seed 42
    python -m mmai_bridge.scripts.play --logging.render_every=20 --loglevel DEBUG

Config priority: CLI overrides > YAML file > hardcoded defaults
"""

import argparse
import logging
import random
import sys
import threading

from mmai_bridge.data.constants import ACTION_RENDER_ANSI
from mmai_bridge.env.bridge import AgentChannel, AttackStats, DecisionBridge, Observation
from mmai_bridge.env.sandbox import SandboxBattle, default_armies
from mmai_bridge.model.action_utils import MaskedRandomAgent
from mmai_bridge.utils.config import DEFAULT_CONFIG, load_config
from mmai_bridge.utils.logger import Logger

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


class SandboxHost(threading.Thread):
    """Runs ``battles`` sandbox battles, one after another."""

    def __init__(self, bridge: DecisionBridge, config: dict):
        super().__init__(name="sandbox-host", daemon=True)
        self.bridge = bridge
        self.config = config
        self.battle: SandboxBattle | None = None
        self.error: BaseException | None = None

    def request_reset(self):
        if self.battle is not None:
            self.battle.reset_requested = True

    def run(self):
        sc = self.config["sandbox"]
        seed = self.config["agent"]["seed"]
        rng = random.Random(seed)

        try:
            for i in range(sc["battles"]):
                battle = SandboxBattle(
                    default_armies(sc["n_slots"], rng),
                    my_side=sc["my_side"],
                    obstacles=sc["obstacles"],
                    max_rounds=sc["max_rounds"],
                    seed=rng.randrange(2**31),
                )
                battle.on_attack = self.bridge.record_attack
                self.battle = battle

                self.bridge.start_battle(i)
                battle.play(self.bridge.on_active_unit)
                self.bridge.end_battle(battle.victory, battle)
        except Exception as e:
            logger.exception("Host thread failed: %s", e)
            self.error = e


def next_observation(channel: AgentChannel, host: SandboxHost, poll: float) -> Observation:
    while True:
        try:
            return channel.observe(timeout=poll)
        except TimeoutError:
            if not host.is_alive():
                raise RuntimeError(f"Host thread exited: {host.error!r}")


def play(config: dict) -> float:
    """Play all configured battles; returns the final win rate."""
    lc = config["logging"]
    bridge = DecisionBridge(color=config["bridge"]["color"])
    host = SandboxHost(bridge, config)
    bridge.reset_hook = host.request_reset

    agent = MaskedRandomAgent(seed=config["agent"]["seed"], device=config["agent"]["device"])
    tb = Logger(lc["log_dir"], window=lc["winrate_window"])
    poll = config["bridge"]["poll_interval"]

    host.start()
    try:
        for _ in range(config["sandbox"]["battles"]):
            decisions = 0
            totals = AttackStats()

            while True:
                obs = next_observation(bridge, host, poll)
                totals = totals + obs.stats

                if obs.ended:
                    tb.log_battle(obs.victory, decisions, bridge.invalid_actions, totals)
                    break

                if lc["render_every"] and decisions % lc["render_every"] == 0:
                    bridge.act(ACTION_RENDER_ANSI)
                    logger.info("Decision %d:\n%s", decisions, bridge.render())

                index = agent.act(obs)
                logger.debug("Agent: %s", bridge.codec.name(index))
                bridge.act(index)
                decisions += 1

        host.join(timeout=poll)
        return tb.recent_winrate()
    finally:
        tb.close()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="MMAI bridge sandbox play",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG,
        help=f"YAML config file path (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--loglevel",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    args, extra = parser.parse_known_args()
    logging.getLogger().setLevel(getattr(logging, args.loglevel))

    try:
        config = load_config(args.config, extra)
    except FileNotFoundError as e:
        logger.error("%s", e)
        sys.exit(1)

    try:
        winrate = play(config)
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        sys.exit(1)

    logger.info("Done. Win rate: %.2f", winrate)


if __name__ == "__main__":
    main()
