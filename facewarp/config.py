from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "paths": {
        "input_dir": "images",
        "output_dir": "outputs",
    },
    "mediapipe": {
        "static_image_mode": True,
        "refine_landmarks": False,
        "max_faces": 2,
        "min_detection_confidence": 0.5,
    },
    "input": {
        # Larger images are downscaled before detection; None disables a limit
        "max_width": 640,
        "max_height": 480,
    },
    "validation": {
        # Inclusive: a face scored exactly at the threshold is accepted
        "min_confidence": 0.7,
        "min_landmarks": 468,
    },
    "scales": {
        "min": 0.5,
        "max": 2.0,
        # Defaults used by the CLI when no scale is given
        "eye": 1.0,
        "face": 1.0,
    },
    "enlarge": {
        # padding = max(min_padding, ratio * box_w, ratio * box_h)
        "min_padding": 2.0,
        "padding_ratio": 0.1,
    },
    "jaw": {
        "blur_radius": 2.0,
        "alpha": 0.9,
        "soft_focus": True,
    },
    "output": {
        "ext": ".png",
        "jpeg_quality": 92,
        # BGR fill used when the output format has no alpha channel
        "background": [0, 0, 0],
    },
    "runtime": {
        "workers": 0,  # 0 => single-thread; >0 => process pool size
        "max_files": None,
        "log_level": "INFO",
    },
}


def _deep_merge(base: MutableMapping[str, Any], override: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for k, v in override.items():
        if k in base and isinstance(base[k], MutableMapping) and isinstance(v, Mapping):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_yaml(path: str | Path | None) -> Dict[str, Any]:
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        logger.warning("YAML config not found: %s", p)
        return {}
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("Top-level of YAML must be a mapping/dict")
    return data


def merge_config(yaml_cfg: Mapping[str, Any] | None = None, cli_overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    cfg: Dict[str, Any] = {}
    _deep_merge(cfg, copy.deepcopy(DEFAULTS))
    if yaml_cfg:
        _deep_merge(cfg, dict(yaml_cfg))
    if cli_overrides:
        _deep_merge(cfg, dict(cli_overrides))
    return cfg


def load_and_merge(yaml_path: str | Path | None, cli_overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    yaml_cfg = load_yaml(yaml_path)
    return merge_config(yaml_cfg, cli_overrides)


def section(cfg: Optional[Mapping[str, Any]], name: str) -> Dict[str, Any]:
    """Return a config section with defaults filled in for missing keys."""
    out = dict(DEFAULTS.get(name, {}))
    if cfg and isinstance(cfg.get(name), Mapping):
        out.update(cfg[name])
    return out


def scale_bounds(cfg: Optional[Mapping[str, Any]] = None) -> Tuple[float, float]:
    sc = section(cfg, "scales")
    return float(sc["min"]), float(sc["max"])


__all__ = ["DEFAULTS", "load_yaml", "merge_config", "load_and_merge", "section", "scale_bounds"]
