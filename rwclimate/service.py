# rwclimate/service.py

from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from rwclimate.builders import (
    build_collection_requests, build_series_requests, build_point_queries,
    build_export_requests, build_region,
)
from rwclimate.config import StudyConfig, load_registry
from rwclimate.exporter import submit_drive_exports
from rwclimate.inspector import ClickReading
from rwclimate.layers import LayerStack, build_layer_specs
from rwclimate.legend import climate_legend
from rwclimate.state import AppState, EventDispatcher, CLICK, SELECT


class ClimateService:
    """
    Core service for the climate explorer.
    Loads studies from the registry and assembles the application state,
    series and exports for the active study.
    """

    def __init__(self, registry_path: str = "studies.json"):
        self.registry = load_registry(registry_path)
        self.active_code: Optional[str] = None
        self.active_study: Optional[StudyConfig] = None

    def get_available_studies(self) -> List[Tuple[str, str]]:
        """Returns list of (label, code) for available studies."""
        return [(conf.get('name', code), code) for code, conf in self.registry.items()]

    def load_study(self, code: str) -> StudyConfig:
        if code not in self.registry:
            raise ValueError(f"Study code '{code}' not found in registry. Available: {list(self.registry)}")
        self.active_study = StudyConfig(code, self.registry[code])
        self.active_code = code
        return self.active_study

    def _ensure_loaded(self) -> StudyConfig:
        if self.active_study is None:
            raise RuntimeError("No study loaded. Call load_study() first.")
        return self.active_study

    # --------------------------- Pipeline ---------------------------

    def build_state(self, analysis, progress_callback: Optional[Callable[[float, str], None]] = None) -> AppState:
        """
        Region, filtered/transformed collections and mean composites for the
        active study. Everything stays lazy on the Earth Engine side except the
        region match check.
        """
        study = self._ensure_loaded()
        if progress_callback: progress_callback(0.1, "Selecting region...")
        region = analysis.region(build_region(study))

        collection_requests = build_collection_requests(study)
        collections, composites = {}, {}
        for key, req in collection_requests.items():
            if progress_callback: progress_callback(0.3, f"Preparing {key} collection...")
            collections[key] = analysis.load_collection(req)
            composites[key] = analysis.composite(collections[key], study.indicator(key)["composite_reducer"])

        return AppState(
            study=study,
            region=region,
            collection_requests=collection_requests,
            series_requests=build_series_requests(study),
            collections=collections,
            composites=composites,
            layers=LayerStack(build_layer_specs(study)),
            legend=climate_legend(study.year),
            export_requests=build_export_requests(study),
        )

    def compute_series(self, analysis, state: AppState) -> Dict[str, pd.DataFrame]:
        """Fetches one chart series per indicator (mean temperature, summed rainfall). A failed series is None."""
        for key, req in state.series_requests.items():
            try:
                state.series[key] = analysis.time_series(state.collections[req.collection_key], req, state.region)
            except Exception as e:
                print(f"[WARN] {key} series failed: {e}")
                state.series[key] = None
        return state.series

    def inspect_point(self, analysis, state: AppState, lon: float, lat: float) -> Optional[ClickReading]:
        queries = build_point_queries(state.study, lon, lat)
        return state.inspector.inspect(
            lon, lat, queries, lambda qs: analysis.sample_point(state.composites, qs)
        )

    def submit_exports(self, analysis, state: AppState) -> Dict[str, str]:
        state.export_task_ids = submit_drive_exports(analysis, state.region, state.composites, state.export_requests)
        return state.export_task_ids

    def wire_events(self, analysis, state: AppState) -> EventDispatcher:
        """Dispatch table for the map's interactions: select -> visibility, click -> reading."""
        dispatcher = EventDispatcher()
        dispatcher.register(SELECT, state.layers.select)
        dispatcher.register(CLICK, lambda lon, lat: self.inspect_point(analysis, state, lon, lat))
        return dispatcher
