"""Options for the mindmap view and their on-disk config file."""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .errors import InvalidOptionError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".tocmap.json"

# (min, max) for the numeric options users can tune from the config file.
OPTION_CONSTRAINTS: dict[str, tuple[float, float]] = {
    "window_width": (200, 1200),
    "window_height": (200, 800),
    "initial_expand_level": (1, 6),
    "zoom_step": (0.1, 1.0),
    "debounce_ms": (0, 5000),
    "settle_ms": (0, 5000),
    "fit_animation_ms": (0, 5000),
    "zoom_animation_ms": (0, 5000),
    "scroll_settle_ms": (0, 10000),
    "highlight_duration_ms": (0, 10000),
    "viewport_margin": (0, 2000),
    "default_scale": (0.05, 20.0),
    "scroll_offset": (0, 2000),
}

DEFAULT_PALETTE = ("#4CAF50", "#2196F3", "#FF9800", "#9C27B0", "#F44336", "#00BCD4")


@dataclass(frozen=True)
class MindmapOptions:
    window_width: int = 450
    window_height: int = 600
    initial_expand_level: int = 3
    zoom_step: float = 0.2
    enable_real_time_update: bool = True
    debounce_ms: int = 200
    settle_ms: int = 300
    fit_animation_ms: int = 500
    zoom_animation_ms: int = 250
    scroll_settle_ms: int = 600
    viewport_margin: float = 100.0
    default_scale: float = 2.0
    scroll_offset: float = 80.0
    node_highlight_color: str = "#ffe58f"
    heading_highlight_color: str = "#fff3bf"
    highlight_duration_ms: int = 1200
    # Layout hints passed through to the diagram surface.
    spacing_horizontal: int = 80
    spacing_vertical: int = 20
    fit_ratio: float = 0.95
    padding_x: int = 20
    color: tuple[str, ...] = field(default=DEFAULT_PALETTE)
    color_freeze_level: int = 2

    def merged(self, **partial: Any) -> MindmapOptions:
        """Return a copy with `partial` applied; reject unknown keys and out-of-range values."""
        known = {f.name for f in dataclasses.fields(self)}
        for key, value in partial.items():
            if key not in known:
                raise InvalidOptionError(key, "unknown option")
            bounds = OPTION_CONSTRAINTS.get(key)
            if bounds is not None:
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise InvalidOptionError(key, f"expected a number, got {value!r}")
                low, high = bounds
                if not low <= value <= high:
                    raise InvalidOptionError(key, f"{value!r} outside [{low}, {high}]")
        if "color" in partial:
            colors = partial["color"]
            if (
                not isinstance(colors, (list, tuple))
                or not colors
                or not all(isinstance(item, str) for item in colors)
            ):
                raise InvalidOptionError("color", f"expected a non-empty list of color strings, got {colors!r}")
            partial["color"] = tuple(colors)
        return dataclasses.replace(self, **partial)

    def layout_options(self) -> dict[str, Any]:
        """Subset consumed by the diagram surface."""
        return {
            "spacing_horizontal": self.spacing_horizontal,
            "spacing_vertical": self.spacing_vertical,
            "fit_ratio": self.fit_ratio,
            "padding_x": self.padding_x,
            "color": list(self.color),
            "color_freeze_level": self.color_freeze_level,
            "initial_expand_level": self.initial_expand_level,
        }


def _clamp(key: str, value: Any, default: Any) -> Any:
    bounds = OPTION_CONSTRAINTS.get(key)
    if bounds is None:
        return value
    try:
        number = type(default)(value)
    except (TypeError, ValueError):
        return default
    low, high = bounds
    return max(type(default)(low), min(type(default)(high), number))


def options_from_mapping(raw: Mapping[str, Any], base: MindmapOptions | None = None) -> MindmapOptions:
    """Lenient conversion used for config files: clamp numbers, skip unknown keys."""
    base = base or MindmapOptions()
    values: dict[str, Any] = {}
    for f in dataclasses.fields(base):
        if f.name not in raw:
            continue
        default = getattr(base, f.name)
        value = raw[f.name]
        if isinstance(default, bool):
            values[f.name] = bool(value)
        elif isinstance(default, tuple):
            if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value) and value:
                values[f.name] = tuple(value)
        elif isinstance(default, str):
            values[f.name] = str(value)
        else:
            values[f.name] = _clamp(f.name, value, default)
    unknown = sorted(set(raw) - {f.name for f in dataclasses.fields(base)})
    if unknown:
        logger.warning("Ignoring unknown options: %s", ", ".join(unknown))
    return dataclasses.replace(base, **values)


def config_file_path() -> Path:
    return Path.home() / CONFIG_FILE_NAME


def load_options(path: Path | None = None) -> MindmapOptions:
    """Read options from the JSON config file, falling back to defaults."""
    cfg_path = path or config_file_path()
    try:
        if not cfg_path.exists():
            return MindmapOptions()
        raw = json.loads(cfg_path.read_text(encoding="utf-8") or "{}")
    except (OSError, ValueError) as exc:
        # Any read/parse issue should fall back to the defaults.
        logger.warning("Could not read %s: %s", cfg_path, exc)
        return MindmapOptions()
    if not isinstance(raw, dict):
        logger.warning("Ignoring %s: expected a JSON object", cfg_path)
        return MindmapOptions()
    return options_from_mapping(raw)
