"""Runtime configuration: skin thresholds, lighting presets, engine settings.

Thresholds are plain data and are validated when built, so a malformed range
fails at load time instead of on the first frame. HSV components are all
fractions in [0, 1] (hue is a fraction of a full turn).
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger("sign_engine.config")

HSV = tuple[float, float, float]

DEFAULT_PRESET = "normal"


class ConfigError(ValueError):
    """Raised for malformed thresholds or engine settings."""


@dataclass(frozen=True)
class Thresholds:
    """Skin-classification ranges plus the minimum hand blob size."""
    skin_lower_hsv: HSV = (0.0, 0.2, 0.4)
    skin_upper_hsv: HSV = (0.1, 0.6, 1.0)
    blob_min_size: int = 2000

    def __post_init__(self):
        lower = tuple(float(c) for c in self.skin_lower_hsv)
        upper = tuple(float(c) for c in self.skin_upper_hsv)
        if len(lower) != 3 or len(upper) != 3:
            raise ConfigError("HSV bounds need exactly three components (h, s, v)")

        for channel, lo, hi in zip("hsv", lower, upper):
            if not (0.0 <= lo <= 1.0 and 0.0 <= hi <= 1.0):
                raise ConfigError(f"{channel} bounds must lie in [0, 1], got [{lo}, {hi}]")
            if lo > hi:
                raise ConfigError(f"{channel} lower bound {lo} exceeds upper bound {hi}")

        if int(self.blob_min_size) < 0:
            raise ConfigError(f"blob_min_size must be >= 0, got {self.blob_min_size}")

        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "skin_lower_hsv", lower)
        object.__setattr__(self, "skin_upper_hsv", upper)
        object.__setattr__(self, "blob_min_size", int(self.blob_min_size))

    def to_dict(self) -> dict:
        return {
            "skin_lower_hsv": list(self.skin_lower_hsv),
            "skin_upper_hsv": list(self.skin_upper_hsv),
            "blob_min_size": self.blob_min_size,
        }

    @classmethod
    def from_dict(cls, data: dict, base: Optional[Thresholds] = None) -> Thresholds:
        """Build thresholds from a dict, filling gaps from `base` (or defaults)."""
        base = base or cls()
        return cls(
            skin_lower_hsv=tuple(data.get("skin_lower_hsv", base.skin_lower_hsv)),
            skin_upper_hsv=tuple(data.get("skin_upper_hsv", base.skin_upper_hsv)),
            blob_min_size=data.get("blob_min_size", base.blob_min_size),
        )


# "bright" narrows the value range upward; "dim" widens saturation and lowers
# both the value floor and the blob size gate.
PRESETS: dict[str, Thresholds] = {
    "bright": Thresholds(
        skin_lower_hsv=(0.0, 0.2, 0.55),
        skin_upper_hsv=(0.1, 0.6, 1.0),
        blob_min_size=2000,
    ),
    "normal": Thresholds(
        skin_lower_hsv=(0.0, 0.2, 0.4),
        skin_upper_hsv=(0.1, 0.6, 1.0),
        blob_min_size=2000,
    ),
    "dim": Thresholds(
        skin_lower_hsv=(0.0, 0.1, 0.2),
        skin_upper_hsv=(0.1, 0.75, 1.0),
        blob_min_size=1200,
    ),
}


def get_preset(name: str) -> Thresholds:
    """Look up a lighting preset by name."""
    if not isinstance(name, str):
        raise ConfigError(f"Preset name must be a string, got {name!r}")
    try:
        return PRESETS[name.lower()]
    except KeyError:
        raise ConfigError(
            f"Unknown preset '{name}'. Available: {', '.join(sorted(PRESETS))}"
        ) from None


@dataclass
class EngineConfig:
    """Everything a `SignPipeline` needs besides the vocabulary and rules.

    `thresholds` defaults to the values of the named `preset`; pass it
    explicitly to override them.
    """
    preset: str = DEFAULT_PRESET
    thresholds: Optional[Thresholds] = None
    history_size: int = 10
    min_history: int = 5
    stability_cutoff: float = 0.6
    cooldown_ms: float = 2000.0
    max_symbols: int = 10
    suppress_repeats: bool = False
    min_confidence: float = 0.5

    def __post_init__(self):
        base = get_preset(self.preset)
        self.preset = self.preset.lower()
        if self.thresholds is None:
            self.thresholds = base

        if self.history_size < 1:
            raise ConfigError("history_size must be >= 1")
        if not 1 <= self.min_history <= self.history_size:
            raise ConfigError("min_history must be between 1 and history_size")
        if not 0.0 < self.stability_cutoff <= 1.0:
            raise ConfigError("stability_cutoff must be in (0, 1]")
        if self.cooldown_ms < 0:
            raise ConfigError("cooldown_ms must be >= 0")
        if self.max_symbols < 1:
            raise ConfigError("max_symbols must be >= 1")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ConfigError("min_confidence must be in [0, 1]")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        """Build a config from a plain dict.

        The `preset` key picks the base thresholds; an optional `thresholds`
        mapping overrides individual fields of that preset.
        """
        preset = data.get("preset", DEFAULT_PRESET)
        thresholds = Thresholds.from_dict(data.get("thresholds") or {}, base=get_preset(preset))

        known = {f.name for f in fields(cls)} - {"preset", "thresholds"}
        unknown = set(data) - known - {"preset", "thresholds"}
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))

        return cls(
            preset=preset,
            thresholds=thresholds,
            **{k: v for k, v in data.items() if k in known},
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load an engine config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["thresholds"] = self.thresholds.to_dict()
        return data

    def to_yaml(self, path: str | Path):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
