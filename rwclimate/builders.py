# rwclimate/builders.py
"""
Pure-data request objects for every Earth Engine query and export the explorer issues.

Nothing here talks to Earth Engine; ``ClimateAnalysis`` turns these requests into
server-side calls.
"""

import datetime as dt
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import pandas as pd
from unidecode import unidecode

from rwclimate.config import INDICATORS, StudyConfig
from rwclimate.constants import (
    TIME_START, CHART_STYLES, CHART_X_TITLE, CHART_DATE_FORMAT,
    CHART_LINE_WIDTH, CHART_POINT_SIZE, TEMPERATURE_UNIT, RAINFALL_UNIT,
)

UNITS = {"temperature": TEMPERATURE_UNIT, "rainfall": RAINFALL_UNIT}


@dataclass(frozen=True)
class RegionSpec:
    """Attribute-equality filter selecting one boundary feature."""
    collection_id: str
    property_name: str
    value: str


@dataclass(frozen=True)
class TemporalExtent:
    start: str
    end: str

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise ValueError(f"Temporal extent start {self.start} is after end {self.end}")

    @property
    def start_date(self) -> dt.date:
        return dt.date.fromisoformat(self.start)

    @property
    def end_date(self) -> dt.date:
        return dt.date.fromisoformat(self.end)

    def contains(self, when) -> bool:
        """Inclusive on both ends. Accepts dates, datetimes, ISO strings and pandas timestamps."""
        day = pd.Timestamp(when).date()
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class ImageTransform:
    """Per-image affine rescale (``value * scale + offset``), optional clip, kept properties."""
    scale: float = 1.0
    offset: float = 0.0
    clip: bool = True
    keep_properties: Tuple[str, ...] = (TIME_START,)

    @property
    def is_identity(self) -> bool:
        return self.scale == 1.0 and self.offset == 0.0

    def apply_value(self, value: float) -> float:
        return value * self.scale + self.offset

    def invert_value(self, value: float) -> float:
        return (value - self.offset) / self.scale


@dataclass(frozen=True)
class CollectionRequest:
    key: str
    dataset_id: str
    band: str
    extent: TemporalExtent
    region: RegionSpec
    transform: ImageTransform


@dataclass(frozen=True)
class SeriesRequest:
    """One time-series chart: region reduction of every image in a collection."""
    collection_key: str
    band: str
    reducer: str
    scale_m: int
    title: str
    y_title: str
    color: str
    x_title: str = CHART_X_TITLE
    date_format: str = CHART_DATE_FORMAT
    line_width: float = CHART_LINE_WIDTH
    point_size: float = CHART_POINT_SIZE


@dataclass(frozen=True)
class PointQuery:
    composite_key: str
    band: str
    lon: float
    lat: float
    scale_m: int
    unit: str
    reducer: str = "mean"


@dataclass(frozen=True)
class ExportRequest:
    composite_key: str
    description: str
    scale_m: int
    region: RegionSpec
    max_pixels: float
    folder: Optional[str] = None
    file_format: str = "GeoTIFF"


def export_slug(text: str) -> str:
    """Earth Engine task descriptions allow only letters, digits, '_' and '-'."""
    ascii_text = unidecode(text).strip().replace(" ", "_")
    return "".join(ch for ch in ascii_text if ch.isalnum() or ch in "_-")


def build_region(study: StudyConfig) -> RegionSpec:
    return RegionSpec(study.boundary_collection, study.boundary_property, study.country)


def build_extent(study: StudyConfig) -> TemporalExtent:
    return TemporalExtent(study.start, study.end)


def build_collection_requests(study: StudyConfig) -> Dict[str, CollectionRequest]:
    region = build_region(study)
    extent = build_extent(study)
    requests = {}
    for key in INDICATORS:
        ind = study.indicator(key)
        requests[key] = CollectionRequest(
            key=key,
            dataset_id=ind["dataset"],
            band=ind["band"],
            extent=extent,
            region=region,
            transform=ImageTransform(scale=float(ind["scale_factor"]), offset=float(ind["offset"])),
        )
    return requests


def build_series_requests(study: StudyConfig) -> Dict[str, SeriesRequest]:
    requests = {}
    for key in INDICATORS:
        ind = study.indicator(key)
        style = CHART_STYLES[key]
        requests[key] = SeriesRequest(
            collection_key=key,
            band=ind["band"],
            reducer=ind["series_reducer"],
            scale_m=int(ind["scale_m"]),
            title=style["title"].format(country=study.country, year=study.year),
            y_title=style["y_title"],
            color=style["color"],
        )
    return requests


def build_point_queries(study: StudyConfig, lon: float, lat: float) -> List[PointQuery]:
    """Click readings: mean of each composite at the indicator's native scale."""
    return [
        PointQuery(
            composite_key=key,
            band=study.indicator(key)["band"],
            lon=float(lon),
            lat=float(lat),
            scale_m=int(study.indicator(key)["scale_m"]),
            unit=UNITS[key],
        )
        for key in INDICATORS
    ]


def build_export_requests(study: StudyConfig, folder: Optional[str] = None) -> List[ExportRequest]:
    region = build_region(study)
    folder = folder or study.drive_folder
    requests = []
    for key in INDICATORS:
        ind = study.indicator(key)
        requests.append(ExportRequest(
            composite_key=key,
            description=export_slug(f"{study.country}_{ind['label']}_{study.year}"),
            scale_m=int(ind["scale_m"]),
            region=region,
            max_pixels=float(ind["max_pixels"]),
            folder=folder,
        ))
    return requests
