"""Agent-side helpers: masking, batching and a masked random agent."""

from typing import Optional

import numpy as np
import torch

from mmai_bridge.data.constants import N_ACTIONS
from mmai_bridge.env.bridge import Observation


def apply_mask(logits: torch.Tensor, mask: torch.Tensor) -> torch.Tensor:
    """Apply boolean mask to logits.

    Args:
        logits: (B, N_ACTIONS) float tensor
        mask:   (B, N_ACTIONS) bool tensor, True=allowed, False=blocked

    Returns:
        Masked logits with blocked actions set to -1e8.
    """
    return logits.masked_fill(~mask.bool(), -1e8)


def batch_observations(obs_list: list[Observation], device: str = "cpu") -> dict[str, torch.Tensor]:
    """Stack observations into batched tensors.

    Returns:
        {"state": (B, STATE_SIZE) float32, "mask": (B, N_ACTIONS) bool}
    """
    state = np.stack([o.state for o in obs_list])
    mask = np.stack([o.mask for o in obs_list])
    return {
        "state": torch.from_numpy(state).float().to(device),
        "mask": torch.from_numpy(mask).bool().to(device),
    }


class MaskedRandomAgent:
    """Uniform choice among the legal actions of each observation."""

    def __init__(self, seed: Optional[int] = None, device: str = "cpu"):
        self.device = device
        self.generator = torch.Generator(device=device)
        if seed is not None:
            self.generator.manual_seed(seed)

    def act_batch(self, obs_list: list[Observation]) -> torch.Tensor:
        batch = batch_observations(obs_list, self.device)
        logits = apply_mask(torch.zeros(len(obs_list), N_ACTIONS, device=self.device), batch["mask"])
        probs = torch.softmax(logits, dim=-1)
        return torch.multinomial(probs, 1, generator=self.generator).squeeze(-1)

    def act(self, obs: Observation) -> int:
        if not obs.mask.any():
            raise ValueError("No legal action in observation")
        return int(self.act_batch([obs])[0].item())
