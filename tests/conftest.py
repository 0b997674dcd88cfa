"""
Pytest configuration and shared fixtures for Climate Explorer tests.

Uses the real studies.json registry. Nothing here contacts Earth Engine: the
analysis collaborator is replaced by a recording stand-in.
"""

import pytest
import json
import os
import sys
import types
from pathlib import Path

import pandas as pd


# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Add project root to sys.path for rwclimate imports
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rwclimate.config import StudyConfig  # noqa: E402


@pytest.fixture(scope="session")
def project_root():
    """Returns the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def registry_path():
    return str(PROJECT_ROOT / "studies.json")


@pytest.fixture(scope="session")
def studies_config(registry_path):
    """Loads the real studies.json registry."""
    if not os.path.exists(registry_path):
        pytest.skip("studies.json not found in project root")
    with open(registry_path, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def study(studies_config):
    return StudyConfig("RWA_2024", studies_config["RWA_2024"])


class RecordingAnalysis:
    """
    Stand-in for ClimateAnalysis recording every call. Regions, collections and
    composites are plain strings naming what would have been built remotely.
    """

    def __init__(self, readings=None, series=None):
        self.calls = []
        self.readings = readings if readings is not None else {"temperature": 31.23456, "rainfall": 4.5}
        self.series = series or {}
        self._next_task = 0

    def region(self, spec):
        self.calls.append(("region", spec))
        return f"region:{spec.value}"

    def load_collection(self, request):
        self.calls.append(("load_collection", request))
        return f"collection:{request.key}"

    def composite(self, collection, reducer="mean"):
        self.calls.append(("composite", collection, reducer))
        return f"{reducer}:{collection}"

    def time_series(self, collection, request, region):
        self.calls.append(("time_series", collection, request, region))
        key = request.collection_key
        if key in self.series:
            result = self.series[key]
            if isinstance(result, Exception):
                raise result
            return result
        return pd.DataFrame({
            "date": pd.to_datetime(["2024-01-01", "2024-01-09", "2024-01-17"]),
            "value": [28.1, 29.4, 30.0],
        })

    def sample_point(self, composites, queries):
        self.calls.append(("sample_point", dict(composites), list(queries)))
        return {q.composite_key: self.readings.get(q.composite_key) for q in queries}

    def start_export(self, image, request, region):
        self.calls.append(("start_export", image, request, region))
        self._next_task += 1
        return f"TASK{self._next_task}"


@pytest.fixture
def fake_analysis():
    return RecordingAnalysis()


@pytest.fixture
def service(registry_path):
    from rwclimate.service import ClimateService
    svc = ClimateService(registry_path=registry_path)
    svc.load_study("RWA_2024")
    return svc


@pytest.fixture
def app_state(service, fake_analysis):
    return service.build_state(fake_analysis)


# --------------------------- Recording Earth Engine module ---------------------------

class _Value:
    """Server-side value whose getInfo() returns a local Python value."""

    def __init__(self, ee, value):
        self.ee = ee
        self.value = value

    def getInfo(self):
        self.ee.getinfo_calls += 1
        return self.value


class FakeFeatureCollection:
    def __init__(self, ee, source):
        self.ee = ee
        self.source = source
        self.filters = []

    def filter(self, flt):
        self.filters.append(flt)
        return self

    def size(self):
        return _Value(self.ee, self.ee.region_matches)

    def geometry(self):
        return ("geometry", self.source)


class FakeImage:
    """Records the chain of image operations; reduceRegion answers from ``ee.pixels``."""

    def __init__(self, ee, source, ops=()):
        self.ee = ee
        self.source = source
        self.ops = tuple(ops)

    def _then(self, name, *args):
        return FakeImage(self.ee, self.source, self.ops + ((name, args),))

    def multiply(self, value):
        return self._then("multiply", value)

    def add(self, value):
        return self._then("add", value)

    def clip(self, geometry):
        return self._then("clip", geometry)

    def copyProperties(self, source, properties):
        return self._then("copyProperties", source, properties)

    def reduceRegion(self, **kwargs):
        self.ee.reductions.append((self.source, kwargs))
        return dict(self.ee.pixels.get(self.source, {}))

    @property
    def op_names(self):
        return [name for name, _ in self.ops]


class FakeImageCollection:
    def __init__(self, ee, dataset_id, ops=()):
        self.ee = ee
        self.dataset_id = dataset_id
        self.ops = tuple(ops)

    def _then(self, name, *args):
        return FakeImageCollection(self.ee, self.dataset_id, self.ops + ((name, args),))

    def filterDate(self, start, end):
        return self._then("filterDate", start, end)

    def filterBounds(self, geometry):
        return self._then("filterBounds", geometry)

    def select(self, band):
        return self._then("select", band)

    def map(self, fn):
        return self._then("map", fn)


class FakeDictionary(_Value):
    def __init__(self, ee, value):
        super().__init__(ee, dict(value))

    def contains(self, key):
        return key in self.value

    def get(self, key):
        return self.value[key]


class FakeTask:
    def __init__(self, ee, params):
        self.params = params
        self.started = False
        self.id = f"TASK{len(ee.exports) + 1}"

    def start(self):
        self.started = True


def make_fake_ee():
    """
    Minimal stand-in for the ``ee`` module covering the calls ClimateAnalysis makes.
    Tests set ``region_matches`` and ``pixels`` and inspect the recorded calls.
    """
    ee = types.ModuleType("ee")
    ee.region_matches = 1
    ee.pixels = {}
    ee.reductions = []
    ee.exports = []
    ee.getinfo_calls = 0

    def image(obj):
        return obj if isinstance(obj, FakeImage) else FakeImage(ee, obj)

    def to_drive(**params):
        task = FakeTask(ee, params)
        ee.exports.append(task)
        return task

    ee.Image = image
    ee.ImageCollection = lambda dataset_id: FakeImageCollection(ee, dataset_id)
    ee.FeatureCollection = lambda source: FakeFeatureCollection(ee, source)
    ee.Dictionary = lambda value: FakeDictionary(ee, value)
    ee.Filter = types.SimpleNamespace(eq=lambda name, value: ("eq", name, value))
    ee.Geometry = types.SimpleNamespace(Point=lambda coords: ("point", tuple(coords)))
    ee.Algorithms = types.SimpleNamespace(If=lambda cond, then, otherwise: then if cond else otherwise)
    ee.Reducer = types.SimpleNamespace(
        mean=lambda: ("reducer", "mean"),
        sum=lambda: ("reducer", "sum"),
    )
    ee.batch = types.SimpleNamespace(
        Export=types.SimpleNamespace(image=types.SimpleNamespace(toDrive=to_drive))
    )
    return ee


@pytest.fixture
def fake_ee(monkeypatch):
    """Installs the recording ``ee`` module for code that imports it lazily."""
    ee = make_fake_ee()
    monkeypatch.setitem(sys.modules, "ee", ee)
    return ee


@pytest.fixture
def ee_analysis(fake_ee):
    from rwclimate.analysis import ClimateAnalysis
    analysis = ClimateAnalysis("proj")
    analysis._ee_initialized = True
    return analysis


@pytest.fixture
def ee_image(fake_ee):
    """Factory for recording images named by their source."""
    return lambda source: FakeImage(fake_ee, source)
