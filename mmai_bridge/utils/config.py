"""YAML config loading with dotted-key CLI overrides.

Config priority: CLI overrides > YAML file > hardcoded defaults
"""

import ast
import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                              "config", "default.yaml")

DEFAULTS = {
    "bridge": {"color": True, "poll_interval": 1.0},
    "sandbox": {"battles": 10, "n_slots": 3, "max_rounds": 50, "my_side": 0, "obstacles": []},
    "agent": {"seed": None, "device": "cpu"},
    "logging": {"log_dir": "runs", "winrate_window": 100, "render_every": 0},
}


def load_config(path: str = DEFAULT_CONFIG, overrides: list[str] | None = None) -> dict:
    """Read ``path`` on top of ``DEFAULTS`` and apply CLI ``overrides``."""
    path = os.path.abspath(path)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Config root must be a mapping: {path}")

    config = _merge(DEFAULTS, loaded)
    logger.info("Loaded config: %s", path)

    if overrides:
        config = apply_overrides(config, overrides)
    return config


def _merge(base: dict, other: dict) -> dict:
    res = copy.deepcopy(base)
    for k, v in other.items():
        if isinstance(v, dict) and isinstance(res.get(k), dict):
            res[k] = _merge(res[k], v)
        else:
            res[k] = v
    return res


def apply_overrides(config: dict, overrides: list[str]) -> dict:
    """Apply dotted-key CLI overrides (``--a.b 1`` or ``--a.b=1``) to config dict."""
    i = 0
    while i < len(overrides):
        raw_key = overrides[i]
        if not raw_key.startswith("--"):
            i += 1
            continue

        key_path = raw_key[2:]
        if "=" in key_path:
            key_path, raw_val = key_path.split("=", 1)
        else:
            i += 1
            if i >= len(overrides):
                logger.warning("Override key '%s' has no value, skipping.", raw_key)
                continue
            raw_val = overrides[i]

        value = parse_value(raw_val)

        parts = key_path.split(".")
        d = config
        for part in parts[:-1]:
            if not isinstance(d.setdefault(part, {}), dict):
                raise ValueError(f"Override {key_path}: '{part}' is not a section")
            d = d[part]
        d[parts[-1]] = value
        logger.info("Override: %s = %r", key_path, value)

        i += 1

    return config


def parse_value(s: str):
    """Auto-convert string to Python value."""
    if s.lower() == "true":
        return True
    if s.lower() == "false":
        return False
    if s.lower() in ("none", "null"):
        return None
    if s.startswith("[") or s.startswith("{"):
        try:
            return ast.literal_eval(s)
        except (ValueError, SyntaxError):
            pass
    try:
        return int(s)
    except ValueError:
        pass
    try:
        return float(s)
    except ValueError:
        pass
    return s
