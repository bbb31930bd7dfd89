import json
from pathlib import Path
from typing import Any


def load_engine_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """
    Loads the engine defaults (feed cost categories, labels, month names).
    If no path is provided, looks for engine_config.json in the config directory.
    """
    if config_path is None:
        # Default to the file next to this script
        final_path = Path(__file__).parent / "engine_config.json"
    else:
        final_path = Path(config_path)

    with open(final_path, encoding="utf-8") as f:
        data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict from {final_path}, got {type(data)}")
        return data


def resolve_config(config: dict[str, Any] | None) -> dict[str, Any]:
    """
    Overlays a caller-supplied config on top of the packaged defaults.

    Nested ``labels`` are merged key by key so a caller can override a single
    label without restating the rest.
    """
    base = load_engine_config()
    if not config:
        return base

    merged = {**base, **config}
    merged["labels"] = {**base.get("labels", {}), **config.get("labels", {})}
    return merged
