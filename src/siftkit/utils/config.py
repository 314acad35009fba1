import copy
import importlib.util
import logging
import os
from typing import Dict, Optional

from ..models.sift import SIFT

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "model": {
        "scales": 3,
        "sigma_0": 1.6,
        "sigma_n": 0.5,
        "contrast_threshold": 0.03,
        "edge_r": 10.0,
        "max_octaves": None,
    },
    "matching": {
        "ratio_threshold": 0.8,
        "cross_check": True,
        "top_k": None,
    },
    "preprocessing": {
        "target_long_edge": None,
    },
}


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Load configuration from a Python file defining a `config` dict

    Sections and keys missing from the file keep their default values. A
    missing file yields the defaults.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if not config_path or not os.path.exists(config_path):
        if config_path:
            logger.warning("Config file %s not found, using defaults", config_path)
        return config

    spec = importlib.util.spec_from_file_location("config", config_path)
    config_module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(config_module)

    for section, values in config_module.config.items():
        if isinstance(values, dict):
            config.setdefault(section, {}).update(values)
        else:
            config[section] = values

    return config


def build_sift(config: Dict) -> SIFT:
    """Instantiate the pipeline from the model and matching sections"""
    return SIFT(**config.get("model", {}), **config.get("matching", {}))
