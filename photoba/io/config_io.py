"""
YAML configuration for `Options`.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from photoba.ba.options import Options


def load_options(path: str) -> Options:
    """
    Read options from a YAML file.

    The keys may sit at the top level or under an `options:` section. Missing
    keys keep their defaults, unknown keys raise ValueError.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")

    values = cfg.get("options", cfg)
    if not isinstance(values, dict):
        raise ValueError(f"{path}: 'options' must be a mapping")
    return Options.from_dict(values)


def save_options(path: str, options: Options) -> None:
    with open(path, "w") as f:
        yaml.safe_dump({"options": options.to_dict()}, f, sort_keys=False)


__all__ = ["load_options", "save_options"]
