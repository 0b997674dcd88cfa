"""
Unit tests for rwclimate.analysis. Earth Engine calls go to the recording
``ee`` module from conftest, so no credentials are needed.
"""

import numpy as np
import pandas as pd
import pytest

import rwclimate.analysis as analysis_mod
from rwclimate.analysis import ClimateAnalysis, features_to_frame, parse_point_reading
from rwclimate.builders import (
    build_point_queries, build_extent, build_region, build_collection_requests, build_export_requests,
)
from rwclimate.exporter import submit_drive_exports


def _ms(date: str) -> int:
    return int(pd.Timestamp(date).value // 1_000_000)


class TestFeaturesToFrame:

    def test_one_row_per_image_sorted(self, study):
        info = {"type": "FeatureCollection", "features": [
            {"properties": {"date": _ms("2024-01-17"), "value": 30.5}},
            {"properties": {"date": _ms("2024-01-01"), "value": 28.25}},
            {"properties": {"date": _ms("2024-01-09"), "value": None}},
        ]}
        df = features_to_frame(info)
        assert list(df.columns) == ["date", "value"]
        assert len(df) == 3
        assert df["date"].is_monotonic_increasing
        assert df["value"].iloc[0] == 28.25
        assert np.isnan(df["value"].iloc[1])
        extent = build_extent(study)
        assert all(extent.contains(d) for d in df["date"])

    def test_empty_collection(self):
        df = features_to_frame({"features": []})
        assert df.empty
        assert list(df.columns) == ["date", "value"]

    def test_features_without_date_skipped(self):
        df = features_to_frame({"features": [{"properties": {"value": 1.0}}]})
        assert df.empty


class TestParsePointReading:

    def test_values_and_missing(self, study):
        queries = build_point_queries(study, 29.87, -1.94)
        readings = parse_point_reading({"temperature": 31, "rainfall": None}, queries)
        assert readings == {"temperature": 31.0, "rainfall": None}

    def test_none_info(self, study):
        queries = build_point_queries(study, 29.87, -1.94)
        assert parse_point_reading(None, queries) == {"temperature": None, "rainfall": None}


class _Flaky:
    def __init__(self, failures, message):
        self.failures = failures
        self.message = message
        self.calls = 0

    def getInfo(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise Exception(self.message)
        return {"ok": True}


class TestGetInfoRetry:

    @pytest.fixture(autouse=True)
    def no_sleep(self, monkeypatch):
        monkeypatch.setattr(analysis_mod.time, "sleep", lambda s: None)

    def test_rate_limit_is_retried(self):
        obj = _Flaky(2, "429 Too Many Requests")
        assert ClimateAnalysis("proj")._ee_getinfo(obj) == {"ok": True}
        assert obj.calls == 3

    def test_other_errors_propagate(self):
        obj = _Flaky(1, "Image.select: Pattern 'LST_Day_1km' did not match any bands.")
        with pytest.raises(Exception, match="did not match"):
            ClimateAnalysis("proj")._ee_getinfo(obj)
        assert obj.calls == 1

    def test_gives_up_after_retries(self):
        obj = _Flaky(100, "Quota exceeded")
        with pytest.raises(RuntimeError, match="failed after 3 attempts"):
            ClimateAnalysis("proj")._ee_getinfo(obj, max_retries=3)


class TestComposite:

    def test_unsupported_reducer(self):
        with pytest.raises(ValueError, match="Unsupported composite reducer"):
            ClimateAnalysis("proj").composite(object(), "percentile")

    def test_mean_composite_calls_collection_mean(self):
        class _Collection:
            def mean(self):
                return "mean-image"
        assert ClimateAnalysis("proj").composite(_Collection()) == "mean-image"


class TestRegion:

    @pytest.mark.parametrize("matches", [0, 2])
    def test_match_count_other_than_one_raises(self, study, fake_ee, ee_analysis, matches):
        fake_ee.region_matches = matches
        with pytest.raises(ValueError, match=f"found {matches}"):
            ee_analysis.region(build_region(study))

    def test_single_match_filters_on_country(self, study, fake_ee, ee_analysis):
        fc = ee_analysis.region(build_region(study))
        assert fc.source == "USDOS/LSIB_SIMPLE/2017"
        assert fc.filters == [("eq", "country_na", "Rwanda")]

    def test_region_is_cached(self, study, fake_ee, ee_analysis):
        first = ee_analysis.region(build_region(study))
        assert ee_analysis.region(build_region(study)) is first
        assert fake_ee.getinfo_calls == 1

    def test_lenient_region_skips_count(self, study, fake_ee, ee_analysis):
        fake_ee.region_matches = 3
        ee_analysis.strict_region = False
        ee_analysis.region(build_region(study))
        assert fake_ee.getinfo_calls == 0


class TestCollections:

    def test_filter_order_and_arguments(self, study, fake_ee, ee_analysis):
        req = build_collection_requests(study)["temperature"]
        coll = ee_analysis.load_collection(req)
        region = ee_analysis.region(req.region)
        assert coll.dataset_id == "MODIS/061/MOD11A2"
        assert [name for name, _ in coll.ops] == ["filterDate", "filterBounds", "select", "map"]
        assert coll.ops[0][1] == ("2024-01-01", "2024-12-31")
        assert coll.ops[1][1] == (region,)
        assert coll.ops[2][1] == ("LST_Day_1km",)

    def test_temperature_mapper_rescales_then_clips(self, study, fake_ee, ee_analysis, ee_image):
        """DN * 0.02 - 273.15, clipped to the region, keeping the acquisition time."""
        req = build_collection_requests(study)["temperature"]
        mapper = ee_analysis.load_collection(req).ops[-1][1][0]
        scene = ee_image("scene")
        out = mapper(scene)
        assert out.op_names == ["multiply", "add", "clip", "copyProperties"]
        assert out.ops[0][1] == (0.02,)
        assert out.ops[1][1] == (-273.15,)
        assert out.ops[2][1] == (ee_analysis.region(req.region),)
        assert out.ops[3][1] == (scene, ["system:time_start"])

    def test_rainfall_mapper_only_clips(self, study, fake_ee, ee_analysis, ee_image):
        req = build_collection_requests(study)["rainfall"]
        coll = ee_analysis.load_collection(req)
        assert coll.dataset_id == "UCSB-CHG/CHIRPS/PENTAD"
        out = coll.ops[-1][1][0](ee_image("pentad"))
        assert out.op_names == ["clip", "copyProperties"]


class TestSamplePoint:

    @pytest.fixture
    def composites(self, ee_image):
        return {"temperature": ee_image("temperature-mean"),
                "rainfall": ee_image("rainfall-mean")}

    def test_single_fetch_with_missing_band(self, study, fake_ee, ee_analysis, composites):
        fake_ee.pixels = {"temperature-mean": {"LST_Day_1km": 31}, "rainfall-mean": {}}
        queries = build_point_queries(study, 29.87, -1.94)
        readings = ee_analysis.sample_point(composites, queries)
        assert readings == {"temperature": 31.0, "rainfall": None}
        assert fake_ee.getinfo_calls == 1

    def test_reduction_at_point_and_native_scale(self, study, fake_ee, ee_analysis, composites):
        ee_analysis.sample_point(composites, build_point_queries(study, 29.87, -1.94))
        scales = {source: kw["scale"] for source, kw in fake_ee.reductions}
        assert scales == {"temperature-mean": 1000, "rainfall-mean": 5000}
        for _, kw in fake_ee.reductions:
            assert kw["geometry"] == ("point", (29.87, -1.94))
            assert kw["reducer"] == ("reducer", "mean")


class TestStartExport:

    def test_drive_export_parameters(self, study, fake_ee, ee_analysis, ee_image, monkeypatch):
        monkeypatch.delenv("RWCLIMATE_DRIVE_FOLDER", raising=False)
        region = ee_analysis.region(build_region(study))
        composites = {"temperature": ee_image("t"), "rainfall": ee_image("r")}
        task_ids = submit_drive_exports(ee_analysis, region, composites, build_export_requests(study))

        assert task_ids == {"Rwanda_Temperature_2024": "TASK1", "Rwanda_Rainfall_2024": "TASK2"}
        temp, rain = fake_ee.exports
        assert temp.started and rain.started
        assert temp.params["image"] is composites["temperature"]
        assert temp.params["scale"] == 1000
        assert rain.params["scale"] == 5000
        for task in (temp, rain):
            assert task.params["maxPixels"] == 1e9
            assert task.params["region"] == ("geometry", "USDOS/LSIB_SIMPLE/2017")
            assert task.params["fileFormat"] == "GeoTIFF"
            assert "folder" not in task.params

    def test_folder_passed_when_configured(self, study, fake_ee, ee_analysis, ee_image, monkeypatch):
        monkeypatch.setenv("RWCLIMATE_DRIVE_FOLDER", "rwanda_exports")
        req = build_export_requests(study)[0]
        ee_analysis.start_export(ee_image("t"), req, ee_analysis.region(req.region))
        assert fake_ee.exports[0].params["folder"] == "rwanda_exports"
