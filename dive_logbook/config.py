"""
Configuration loading for the import pipeline.

Settings live in config.yaml at the repository root. Every key is optional;
anything missing falls back to the defaults below, which reproduce the
documented behaviour of the synthetic generator and the UDDF importer.
"""

import copy
import os

import yaml

DEFAULT_CONFIG = {
    "synthetic": {
        "min_duration_min": 10.0,
        "min_steps": 40,
        "steps_per_minute": 2.0,
        "start_pressure_psi": 3000.0,  # AL80 fill
        "tank_volume_cuft": 80.0,
        "surface_temp_c": 20.0,
        "bottom_temp_delta_c": 8.0,
        "f_o2": 0.32,
        "nitrogen_threshold": 1000.0,
    },
    "uddf": {
        "placeholder_duration_min": 30.0,
        "placeholder_max_depth_m": 18.0,
        "placeholder_avg_depth_m": 10.0,
    },
    "logging": {
        "level": "INFO",
    },
}


def default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "config.yaml")


def load_effective_config(config_path: str = None) -> dict:
    """Load config.yaml and overlay it on DEFAULT_CONFIG.

    Returns a dict with the sections 'synthetic', 'uddf' and 'logging', plus
    'config_path' (the resolved path) and 'config_source' ('file' | 'default').
    """
    if config_path is None:
        config_path = default_config_path()

    config = copy.deepcopy(DEFAULT_CONFIG)
    source = "default"

    if os.path.exists(config_path):
        with open(config_path) as f:
            loaded = yaml.safe_load(f) or {}

        for section, defaults in config.items():
            overrides = loaded.get(section) or {}
            for key, value in overrides.items():
                if key not in defaults:
                    raise ValueError(f"Unknown config key: {section}.{key}")
                defaults[key] = type(defaults[key])(value)
        source = "file"

    config["config_path"] = config_path
    config["config_source"] = source
    return config
