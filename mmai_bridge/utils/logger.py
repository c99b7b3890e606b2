"""TensorBoard logging wrapper for bridge battles."""

import logging
from collections import deque
from pathlib import Path

import numpy as np

from mmai_bridge.env.bridge import AttackStats

logger = logging.getLogger(__name__)


class Logger:
    """TensorBoard logging wrapper with battle tracking."""

    def __init__(self, log_dir: str = "runs", window: int = 100):
        from torch.utils.tensorboard import SummaryWriter

        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        self.writer = SummaryWriter(log_dir=str(log_path))
        self.window = window
        self._battle_results = deque(maxlen=max(window, 200))
        self._battle_count = 0

    def log_battle(self, victory: bool, decisions: int, invalid_actions: int, stats: AttackStats):
        """Log battle completion. ``stats`` are totals over the battle."""
        self._battle_count += 1
        ep = self._battle_count

        self.writer.add_scalar("battle/decisions", decisions, ep)
        self.writer.add_scalar("battle/invalid_actions", invalid_actions, ep)
        self.writer.add_scalar("battle/dmg_dealt", stats.dmg_dealt, ep)
        self.writer.add_scalar("battle/dmg_received", stats.dmg_received, ep)
        self.writer.add_scalar("battle/value_killed", stats.value_killed, ep)
        self.writer.add_scalar("battle/value_lost", stats.value_lost, ep)

        self._battle_results.append(1.0 if victory else 0.0)
        if len(self._battle_results) >= 10:
            self.writer.add_scalar("battle/winrate", self.recent_winrate(), ep)

        logger.info(
            "Battle %d | %s | decisions=%d invalid=%d | dmg=%d/%d",
            ep, "won" if victory else "lost", decisions, invalid_actions,
            stats.dmg_dealt, stats.dmg_received,
        )

    def recent_winrate(self, window: int | None = None) -> float:
        """Recent winrate over last `window` battles."""
        if not self._battle_results:
            return 0.5
        recent = list(self._battle_results)[-(window or self.window):]
        return float(np.mean(recent))

    def close(self):
        """Flush and close writer."""
        self.writer.close()
