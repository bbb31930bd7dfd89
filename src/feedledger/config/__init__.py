"""Engine configuration loading."""

from feedledger.config.loader import load_engine_config, resolve_config

__all__ = ["load_engine_config", "resolve_config"]
