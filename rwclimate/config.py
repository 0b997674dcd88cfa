# rwclimate/config.py
"""
Study registry and runtime configuration.

A study is one (country, time window) pairing of the two climate indicators.
Studies are read from a JSON registry (``studies.json``) keyed by study code;
when no registry file is present the built-in ``RWA_2024`` study is used.
"""

import copy
import json
import os
from typing import Any, Dict, Optional

from rwclimate.constants import (
    BOUNDARY_COLLECTION, BOUNDARY_PROPERTY, DEFAULT_COUNTRY,
    MODIS_LST_COLLECTION, CHIRPS_PENTAD_COLLECTION, LST_BAND, PRECIP_BAND,
    LST_SCALE, KELVIN_OFFSET, TEMPERATURE_SCALE_M, RAINFALL_SCALE_M,
    EXPORT_MAX_PIXELS, DEFAULT_START, DEFAULT_END, TEMPERATURE_VIS, RAINFALL_VIS,
)

PROJECT_ID_ENV = "RWCLIMATE_PROJECT_ID"
DRIVE_FOLDER_ENV = "RWCLIMATE_DRIVE_FOLDER"

INDICATORS = ("temperature", "rainfall")

DEFAULT_INDICATORS: Dict[str, Dict[str, Any]] = {
    "temperature": {
        "label": "Temperature",
        "dataset": MODIS_LST_COLLECTION,
        "band": LST_BAND,
        "scale_factor": LST_SCALE,
        "offset": -KELVIN_OFFSET,
        "series_reducer": "mean",
        "composite_reducer": "mean",
        "scale_m": TEMPERATURE_SCALE_M,
        "max_pixels": EXPORT_MAX_PIXELS,
        "vis": TEMPERATURE_VIS,
    },
    "rainfall": {
        "label": "Rainfall",
        "dataset": CHIRPS_PENTAD_COLLECTION,
        "band": PRECIP_BAND,
        "scale_factor": 1.0,
        "offset": 0.0,
        "series_reducer": "sum",
        "composite_reducer": "mean",
        "scale_m": RAINFALL_SCALE_M,
        "max_pixels": EXPORT_MAX_PIXELS,
        "vis": RAINFALL_VIS,
    },
}

DEFAULT_REGISTRY: Dict[str, Dict[str, Any]] = {
    "RWA_2024": {
        "name": "Rwanda 2024",
        "country": DEFAULT_COUNTRY,
        "boundary_collection": BOUNDARY_COLLECTION,
        "boundary_property": BOUNDARY_PROPERTY,
        "start": DEFAULT_START,
        "end": DEFAULT_END,
    }
}


class StudyConfig:
    """
    Read-only view over one registry entry, with indicator settings merged
    over the built-in defaults.
    """

    def __init__(self, code: str, conf: Dict[str, Any]):
        self.code = code
        self.conf = conf
        self._indicators = {}
        overrides = conf.get("indicators", {})
        for key in INDICATORS:
            merged = copy.deepcopy(DEFAULT_INDICATORS[key])
            merged.update(overrides.get(key, {}))
            self._indicators[key] = merged

    @property
    def name(self) -> str:
        return self.conf.get("name", self.code)

    @property
    def country(self) -> str:
        return self.conf.get("country", DEFAULT_COUNTRY)

    @property
    def boundary_collection(self) -> str:
        return self.conf.get("boundary_collection", BOUNDARY_COLLECTION)

    @property
    def boundary_property(self) -> str:
        return self.conf.get("boundary_property", BOUNDARY_PROPERTY)

    @property
    def start(self) -> str:
        return self.conf.get("start", DEFAULT_START)

    @property
    def end(self) -> str:
        return self.conf.get("end", DEFAULT_END)

    @property
    def year(self) -> int:
        return int(self.start[:4])

    @property
    def drive_folder(self) -> Optional[str]:
        return self.conf.get("drive_folder") or os.environ.get(DRIVE_FOLDER_ENV) or None

    def indicator(self, key: str) -> Dict[str, Any]:
        if key not in self._indicators:
            raise ValueError(f"Unknown indicator '{key}'. Expected one of {list(INDICATORS)}")
        return self._indicators[key]

    def __repr__(self) -> str:
        return f"StudyConfig({self.code!r}, country={self.country!r}, {self.start}..{self.end})"


def load_registry(registry_path: str = "studies.json") -> Dict[str, Dict[str, Any]]:
    """Loads the study registry, falling back to the built-in default study."""
    if registry_path and os.path.exists(registry_path):
        with open(registry_path, 'r', encoding='utf-8') as f:
            registry = json.load(f)
        if not isinstance(registry, dict) or not registry:
            raise ValueError(f"Study registry {registry_path} must be a non-empty JSON object.")
        return registry
    return copy.deepcopy(DEFAULT_REGISTRY)


def default_project_id() -> str:
    return os.environ.get(PROJECT_ID_ENV, "").strip()
