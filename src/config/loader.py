"""
Config Loader

Builds a PipelineConfig from three layers, later layers winning:
the YAML file, flat dotted CLI overrides, then a nested override dict.
"""

from pathlib import Path
from typing import Any, Dict, Optional
import json
import logging

import yaml

from src.config.schema import PipelineConfig


logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def _set_nested(d: Dict[str, Any], dotted_key: str, value: Any) -> None:
    """Assign ``value`` at ``"section.field"``, creating sections as needed."""
    *sections, field = dotted_key.split(".")
    node = d
    for section in sections:
        node = node.setdefault(section, {})
    node[field] = value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Merge ``override`` into ``base`` in place; nested dicts merge, others replace."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
        else:
            base[key] = value


def _resolve_paths(raw: Dict[str, Any], yaml_dir: Path) -> Dict[str, Any]:
    # A relative input path is tried next to the YAML first; if nothing is
    # there it stays relative to the working directory.
    input_path = raw.get("data", {}).get("input_path")
    if not input_path or Path(input_path).is_absolute():
        return raw
    candidate = (yaml_dir / input_path).resolve()
    if candidate.exists():
        raw["data"]["input_path"] = str(candidate)
    return raw


def _read_yaml(yaml_path: str) -> Dict[str, Any]:
    path = Path(yaml_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    logger.info("CONFIG | Loaded %s", yaml_path)
    return _resolve_paths(raw, path.parent)


def load_config(
    yaml_path: Optional[str] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> PipelineConfig:
    """Load the analysis configuration.

    Args:
        yaml_path: YAML file; defaults apply when None or when the file is empty.
        cli_overrides: Flat ``{"validation.test_size": 0.3}`` style dict.
            None values mean "flag not given" and are skipped.
        overrides: Nested dict merged last.

    Returns:
        Frozen PipelineConfig.
    """
    raw = _read_yaml(yaml_path) if yaml_path is not None else {}

    for key, value in (cli_overrides or {}).items():
        if value is not None:
            _set_nested(raw, key, value)

    if overrides:
        _deep_merge(raw, overrides)

    config = PipelineConfig(**raw)
    logger.debug("CONFIG | Validated %d sections", len(type(config).model_fields))
    return config


def save_config(config: PipelineConfig, path: str) -> None:
    """Snapshot a config as YAML, or JSON for any other suffix."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = config.model_dump()

    with open(out_path, "w", encoding="utf-8") as f:
        if out_path.suffix in YAML_SUFFIXES:
            yaml.safe_dump(payload, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(payload, f, indent=2, default=str)

    logger.info("CONFIG | Saved snapshot to %s", path)
