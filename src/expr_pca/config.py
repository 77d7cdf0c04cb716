"""Defaults and JSON config file handling."""

import json
import logging
import os

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "EXPR_PCA_CONFIG"

DEFAULTS = {
    "variance_threshold": 0.001,
    "standardize": True,
    "classes": None,
    "output_dir": "expr_pca_results",
    "log_level": "INFO",
}


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def _is_class_list(value):
    return value is None or (isinstance(value, list) and bool(value) and all(isinstance(v, str) for v in value))


def _is_level(value):
    return isinstance(value, str) and isinstance(logging.getLevelName(value.upper()), int)


VALIDATORS = {
    "variance_threshold": _is_number,
    "standardize": lambda v: isinstance(v, bool),
    "classes": _is_class_list,
    "output_dir": lambda v: isinstance(v, str) and bool(v),
    "log_level": _is_level,
}


def default_config_path():
    return os.environ.get(CONFIG_ENV_VAR) or None


def load_config(path=None) -> dict:
    """
    Return DEFAULTS updated with the values of the JSON file at ``path``.

    Unknown keys are ignored and an unreadable file falls back to the defaults;
    both are reported as warnings.
    """
    cfg = dict(DEFAULTS)
    if not path:
        return cfg

    path = os.path.expanduser(str(path))
    if not os.path.isfile(path):
        logger.warning("Config file %s not found; using defaults", path)
        return cfg

    try:
        with open(path, "r", encoding="utf-8") as fh:
            user_cfg = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read config %s: %s", path, exc)
        return cfg

    if not isinstance(user_cfg, dict):
        logger.warning("Config %s must hold a JSON object; using defaults", path)
        return cfg

    for key, value in user_cfg.items():
        if key not in DEFAULTS:
            logger.warning("Ignoring unknown config key %r in %s", key, path)
            continue
        if not VALIDATORS[key](value):
            logger.warning("Invalid value %r for %r in %s; using default %r", value, key, path, DEFAULTS[key])
            continue
        cfg[key] = value
    logger.info("Using config file %s", path)
    return cfg


def write_default_config(path) -> str:
    path = os.path.expanduser(str(path))
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(DEFAULTS, fh, indent=2)
    logger.info("Created default config at %s", path)
    return path
