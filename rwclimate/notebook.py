# rwclimate/notebook.py
"""
Jupyter explorer on a geemap (ipyleaflet) map: layer select control, legend,
map-click value inspection, charts and export buttons.
"""

from typing import Any, Dict, Optional, Tuple

from rwclimate.analysis import ClimateAnalysis
from rwclimate.charts import render_series
from rwclimate.constants import MAP_ZOOM, MAP_BASEMAP
from rwclimate.layers import add_layers, sync_visibility
from rwclimate.legend import legend_html
from rwclimate.service import ClimateService
from rwclimate.state import CLICK, SELECT


def click_lon_lat(event: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    """ipyleaflet reports ``coordinates`` as [lat, lon]. Returns (lon, lat) for clicks, else None."""
    if event.get("type") != "click" or not event.get("coordinates"):
        return None
    lat, lon = event["coordinates"]
    return float(lon), float(lat)


def build_explorer_ui(service: ClimateService, project_id: str, study_code: str = "RWA_2024", height: str = "650px"):
    """
    Builds the interactive explorer for one study and returns a dict with the
    map, widgets, application state and dispatcher for further control.

    Args:
        service: ClimateService instance
        project_id: Google Earth Engine project ID
        study_code: Registry code of the study to show
        height: Map height (CSS)
    """
    import ipywidgets as W
    from ipyleaflet import WidgetControl
    from IPython.display import display

    analysis = ClimateAnalysis(project_id)
    analysis.initialize_ee()
    service.load_study(study_code)
    state = service.build_state(analysis)
    dispatcher = service.wire_events(analysis, state)

    m = analysis.geemap_map(height=height, backend="ipyleaflet")
    try:
        m.add_basemap(MAP_BASEMAP)
    except Exception as e:
        print(f"[WARN] Basemap {MAP_BASEMAP} unavailable: {e}")
    add_layers(m, state.layers, state.region, state.composites)
    m.centerObject(state.region, MAP_ZOOM)

    legend_control = WidgetControl(widget=W.HTML(legend_html(state.legend, floating=False)),
                                   position=state.legend.position)
    m.add_control(legend_control)

    layer_select = W.Dropdown(options=state.layers.options, value=state.layers.selected,
                              layout=W.Layout(width="160px"))
    m.add_control(WidgetControl(widget=layer_select, position="topleft"))

    reading_html = W.HTML("<i>Click the map to read temperature and rainfall.</i>")
    out_charts = W.Output()
    status = W.HTML("")
    export_btn = W.Button(description="Start Drive exports", icon="cloud-upload")

    def on_layer_change(change):
        try:
            dispatcher.dispatch(SELECT, change["new"])
            sync_visibility(m, state.layers)
        except Exception as e:
            status.value = f"<span style='color:#c00'>Layer switch failed: {e}</span>"

    layer_select.observe(on_layer_change, names="value")

    def on_map_interaction(**kwargs):
        point = click_lon_lat(kwargs)
        if point is None:
            return
        lon, lat = point
        reading_html.value = "<i>Querying...</i>"
        try:
            reading = dispatcher.dispatch(CLICK, lon, lat)
        except Exception as e:
            reading_html.value = f"<span style='color:#c00'>Query failed: {e}</span>"
            return
        if reading is not None:
            reading_html.value = f"<b>{reading.summary(state.indicator_names)}</b>"

    m.on_interaction(on_map_interaction)

    def on_export_click(_):
        try:
            task_ids = service.submit_exports(analysis, state)
            status.value = "Drive exports started: " + ", ".join(f"{d} ({t})" for d, t in task_ids.items())
        except Exception as e:
            status.value = f"<span style='color:#c00'>Export submission failed: {e}</span>"

    export_btn.on_click(on_export_click)

    service.compute_series(analysis, state)
    with out_charts:
        for key, req in state.series_requests.items():
            fig = render_series(state.series.get(key), req)
            if fig is not None:
                display(fig)

    ui = W.VBox([m, reading_html, W.HBox([export_btn, status]), out_charts])
    display(ui)
    return {
        "ui": ui, "map": m, "layer_select": layer_select, "reading": reading_html,
        "state": state, "dispatcher": dispatcher, "analysis": analysis,
    }
