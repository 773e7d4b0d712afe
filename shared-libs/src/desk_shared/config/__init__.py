"""Configuration loading helpers."""

from desk_shared.config.loader import load_config_dict

__all__ = ["load_config_dict"]
