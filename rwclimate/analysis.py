# rwclimate/analysis.py

import time
from typing import Dict, Any, List, Optional

import numpy as np
import pandas as pd

from rwclimate.builders import (
    RegionSpec, ImageTransform, CollectionRequest, SeriesRequest, PointQuery, ExportRequest,
)
from rwclimate.constants import TIME_START, RETRYABLE_MARKERS


def _is_retryable(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(k in msg for k in RETRYABLE_MARKERS)


def features_to_frame(info: Dict[str, Any]) -> pd.DataFrame:
    """
    Converts a getInfo()'d FeatureCollection of {date (ms), value} features into a
    date-sorted DataFrame. Missing values become NaN so charts show gaps.
    """
    rows = []
    for feat in (info or {}).get("features", []):
        props = feat.get("properties", {}) or {}
        if props.get("date") is None:
            continue
        value = props.get("value")
        rows.append({
            "date": pd.to_datetime(int(props["date"]), unit="ms"),
            "value": float(value) if value is not None else np.nan,
        })
    df = pd.DataFrame(rows, columns=["date", "value"])
    return df.sort_values("date").reset_index(drop=True)


def parse_point_reading(info: Optional[Dict[str, Any]], queries: List[PointQuery]) -> Dict[str, Optional[float]]:
    """Maps each query's composite key to its float value, or None where the point had no data."""
    info = info or {}
    readings = {}
    for q in queries:
        value = info.get(q.composite_key)
        readings[q.composite_key] = float(value) if value is not None else None
    return readings


class ClimateAnalysis:
    """
    Thin wrapper around Earth Engine & geemap operations driven by the pure-data
    requests in ``rwclimate.builders``. Earth Engine is imported lazily so the
    request layer and the UI helpers stay importable without credentials.
    """

    def __init__(self, project_id: str, strict_region: bool = True):
        self.project_id = project_id
        self.strict_region = strict_region
        self._ee_initialized = False
        self._regions: Dict[RegionSpec, Any] = {}

    def initialize_ee(self) -> None:
        import ee
        # Robust initialization: try existing credentials first, then interactive flows.
        try:
            ee.Initialize(project=self.project_id)
            self._ee_initialized = True
            return
        except Exception:
            pass

        # Standard interactive auth (opens a link/token flow). Works in most notebooks.
        try:
            ee.Authenticate()
            ee.Initialize(project=self.project_id)
            self._ee_initialized = True
            return
        except Exception:
            pass

        # Hosted notebooks like Colab: explicit notebook auth mode (popup/widget).
        try:
            ee.Authenticate(auth_mode='notebook')
            ee.Initialize(project=self.project_id)
            self._ee_initialized = True
            return
        except Exception as e:
            raise RuntimeError(
                "Earth Engine authentication failed. Please ensure your Google account has access, the 'Earth Engine API' is enabled for your Google Cloud project, and retry. Original error: " + str(e)
            )

    def _ensure_ee(self) -> None:
        if not self._ee_initialized:
            self.initialize_ee()

    def _ee_getinfo(self, ee_object, max_retries: int = 5, backoff_factor: float = 0.6):
        """
        Robust wrapper around `ee_object.getInfo()` with exponential backoff for transient errors (429 rate limits).
        Returns the Python representation of the EE object or raises the last exception if unrecoverable.
        """
        last_exc = None
        for attempt in range(max_retries):
            try:
                return ee_object.getInfo()
            except Exception as e:
                last_exc = e
                if _is_retryable(e):
                    sleep = backoff_factor * (2 ** attempt)
                    print(f"[WARN] EE rate limited, retrying in {sleep:.1f}s: {e}")
                    time.sleep(sleep)
                    continue
                # Non-retryable error: re-raise
                raise
        # Final attempt
        try:
            return ee_object.getInfo()
        except Exception:
            raise RuntimeError(f"EE getInfo failed after {max_retries} attempts: {last_exc}")

    def _ee_get_mapid(self, image, vis_params: Dict[str, Any], max_retries: int = 5, backoff_factor: float = 0.6):
        """Preflight map tile creation with retries to avoid blank maps on transient 429s."""
        import ee
        last_exc = None
        for attempt in range(max_retries):
            try:
                return ee.Image(image).getMapId(vis_params)
            except Exception as e:
                last_exc = e
                if _is_retryable(e) and attempt < max_retries - 1:
                    time.sleep(backoff_factor * (2 ** attempt))
                    continue
                raise
        raise RuntimeError(f"EE getMapId failed after {max_retries} attempts: {last_exc}")

    def geemap_map(self, height: str = "700px", backend: str = "folium"):
        # backend: "folium" or "ipyleaflet"
        self._ensure_ee()
        if backend == "ipyleaflet":
            import geemap  # ipyleaflet backend
            return geemap.Map(height=height, ee_initialize=False)
        else:
            import geemap.foliumap as geemap
            return geemap.Map(height=height, ee_initialize=False)

    # --------------------------- Region & collections ---------------------------

    def region(self, spec: RegionSpec):
        """
        Boundary FeatureCollection filtered to exactly one feature.

        With ``strict_region`` the match count is fetched once and anything other than
        a single feature raises ValueError.
        """
        import ee
        self._ensure_ee()
        if spec in self._regions:
            return self._regions[spec]
        fc = ee.FeatureCollection(spec.collection_id).filter(ee.Filter.eq(spec.property_name, spec.value))
        if self.strict_region:
            count = int(self._ee_getinfo(fc.size()) or 0)
            if count != 1:
                raise ValueError(
                    f"Expected exactly one feature with {spec.property_name} == '{spec.value}' "
                    f"in {spec.collection_id}, found {count}."
                )
        self._regions[spec] = fc
        return fc

    @staticmethod
    def image_mapper(transform: ImageTransform, region):
        """Per-image function for ImageCollection.map: rescale, clip, keep timestamp."""
        import ee

        def _apply(img):
            img = ee.Image(img)
            out = img
            if not transform.is_identity:
                out = out.multiply(transform.scale).add(transform.offset)
            if transform.clip:
                out = out.clip(region)
            return ee.Image(out.copyProperties(img, list(transform.keep_properties)))

        return _apply

    def load_collection(self, request: CollectionRequest):
        import ee
        region = self.region(request.region)
        return (ee.ImageCollection(request.dataset_id)
                .filterDate(request.extent.start, request.extent.end)
                .filterBounds(region)
                .select(request.band)
                .map(self.image_mapper(request.transform, region)))

    @staticmethod
    def _reducer(name: str):
        import ee
        factory = getattr(ee.Reducer, name, None)
        if factory is None:
            raise ValueError(f"Unknown Earth Engine reducer '{name}'")
        return factory()

    def composite(self, collection, reducer: str = "mean"):
        """Temporal aggregate of a collection (per-pixel mean by default). Band names are kept."""
        if reducer not in ("mean", "median", "sum", "min", "max"):
            raise ValueError(f"Unsupported composite reducer '{reducer}'")
        return getattr(collection, reducer)()

    # --------------------------- Queries ---------------------------

    def time_series(self, collection, request: SeriesRequest, region) -> pd.DataFrame:
        """
        One region-reduced value per source image, fetched with a single getInfo.
        Returns a DataFrame with ``date`` and ``value`` columns.
        """
        import ee
        self._ensure_ee()
        reducer = self._reducer(request.reducer)
        geom = region.geometry()
        band = request.band

        def _reduce(img):
            stat = ee.Dictionary(img.reduceRegion(
                reducer=reducer, geometry=geom, scale=request.scale_m,
                maxPixels=1e12, tileScale=4
            ))
            value = ee.Algorithms.If(stat.contains(band), stat.get(band), None)
            return ee.Feature(None, {"date": img.get(TIME_START), "value": value})

        info = self._ee_getinfo(ee.FeatureCollection(collection.map(_reduce)))
        return features_to_frame(info)

    def sample_point(self, composites: Dict[str, Any], queries: List[PointQuery]) -> Dict[str, Optional[float]]:
        """
        Reduces every composite at the query point and fetches all values in one
        round-trip, so a click produces a single consistent reading.
        """
        import ee
        self._ensure_ee()
        values = {}
        for q in queries:
            point = ee.Geometry.Point([q.lon, q.lat])
            stat = ee.Dictionary(ee.Image(composites[q.composite_key]).reduceRegion(
                reducer=self._reducer(q.reducer), geometry=point, scale=q.scale_m
            ))
            values[q.composite_key] = ee.Algorithms.If(stat.contains(q.band), stat.get(q.band), None)
        info = self._ee_getinfo(ee.Dictionary(values))
        return parse_point_reading(info, queries)

    def start_export(self, image, request: ExportRequest, region) -> str:
        """Submits a Drive export task and returns its id. The task runs out-of-band."""
        import ee
        self._ensure_ee()
        params = dict(
            image=ee.Image(image),
            description=request.description,
            scale=request.scale_m,
            region=region.geometry(),
            maxPixels=request.max_pixels,
            fileFormat=request.file_format,
        )
        if request.folder:
            params["folder"] = request.folder
        task = ee.batch.Export.image.toDrive(**params)
        task.start()
        print(f"[INFO] Export task started: {request.description} (id={task.id})")
        return task.id
