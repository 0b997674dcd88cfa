# rwclimate/state.py
"""Explicit application state and the interaction dispatch table."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from rwclimate.builders import CollectionRequest, SeriesRequest, ExportRequest
from rwclimate.config import StudyConfig
from rwclimate.inspector import ClickInspector
from rwclimate.layers import LayerStack
from rwclimate.legend import Legend

CLICK = "click"
SELECT = "select"


@dataclass
class AppState:
    """
    Everything the handlers need, passed to them explicitly. Earth Engine handles
    (region, collections, composites) stay lazy; ``series`` holds fetched data.
    """
    study: StudyConfig
    region: Any
    collection_requests: Dict[str, CollectionRequest]
    series_requests: Dict[str, SeriesRequest]
    collections: Dict[str, Any]
    composites: Dict[str, Any]
    layers: LayerStack
    legend: Legend
    inspector: ClickInspector = field(default_factory=ClickInspector)
    series: Dict[str, pd.DataFrame] = field(default_factory=dict)
    export_requests: List[ExportRequest] = field(default_factory=list)
    export_task_ids: Dict[str, str] = field(default_factory=dict)

    @property
    def indicator_names(self) -> Dict[str, str]:
        return {key: self.study.indicator(key)["label"] for key in self.collection_requests}


class EventDispatcher:
    """Handlers keyed by interaction type; one handler per type."""

    def __init__(self):
        self._handlers: Dict[str, Callable[..., Any]] = {}

    def register(self, kind: str, handler: Callable[..., Any]) -> None:
        if kind in self._handlers:
            raise ValueError(f"Handler for '{kind}' already registered")
        self._handlers[kind] = handler

    def dispatch(self, kind: str, *args, **kwargs) -> Any:
        handler: Optional[Callable[..., Any]] = self._handlers.get(kind)
        if handler is None:
            raise KeyError(f"No handler registered for interaction '{kind}'")
        return handler(*args, **kwargs)

    @property
    def kinds(self) -> List[str]:
        return list(self._handlers)
