# rwclimate/gradio_app.py
"""
Rwanda Climate Explorer - Gradio Application
Includes: temperature/rainfall time series, map layers with legend and layer toggle,
point inspection and Drive exports
"""

import os
from datetime import datetime

import gradio as gr
import matplotlib
import pandas as pd

from rwclimate.analysis import ClimateAnalysis
from rwclimate.charts import render_series, render_series_panel, close_figures
from rwclimate.config import default_project_id
from rwclimate.constants import COLUMN_NAMES
from rwclimate.exporter import ClimateExporter
from rwclimate.layers import render_map_html
from rwclimate.service import ClimateService
from rwclimate.state import CLICK, SELECT

# Charts are rendered server-side for gr.Plot
matplotlib.use("Agg")

# Global service instances
service = ClimateService()
analysis_service: ClimateAnalysis = None


def init_analysis_service(project_id: str):
    """Initialize or reinitialize the analysis service with the given project ID."""
    global analysis_service
    if project_id and project_id.strip():
        analysis_service = ClimateAnalysis(project_id.strip())
    else:
        analysis_service = None


def get_study_choices():
    """Returns list of (label, value) tuples for Gradio dropdown."""
    return service.get_available_studies()


def on_study_change(code):
    """Show the selected study's country and window."""
    if not code:
        return ""
    try:
        study = service.load_study(code)
    except Exception as e:
        raise gr.Error(f"Error loading study: {str(e)}")
    return f"{study.country}: {study.start} → {study.end}"


def _series_display(session) -> pd.DataFrame:
    app_state = session["state"]
    table = ClimateExporter.series_table(app_state.series, app_state.series_requests)
    if table.empty:
        return table
    table = table.rename(columns=COLUMN_NAMES)
    return table.sort_values([COLUMN_NAMES["indicator"], COLUMN_NAMES["date"]]).reset_index(drop=True)


def _map_html(session) -> str:
    app_state = session["state"]
    return render_map_html(analysis_service, app_state.layers, app_state.region,
                           app_state.composites, app_state.legend)


def run_analysis(project_id, study_code, session=None, progress=gr.Progress()):
    """Build the study state, fetch both series and render map and charts."""
    if session:
        close_figures(session.get("figures", ()))
    if not study_code:
        raise gr.Error("Please select a study.")
    if not project_id or not project_id.strip():
        raise gr.Error("Please enter your Google Cloud Project ID.")

    progress(0.0, desc="Connecting to Earth Engine...")
    init_analysis_service(project_id)
    try:
        analysis_service.initialize_ee()
    except Exception as e:
        raise gr.Error(f"Earth Engine Init Failed: {str(e)}")

    def progress_wrapper(p, msg):
        progress(p, desc=msg)

    try:
        service.load_study(study_code)
        app_state = service.build_state(analysis_service, progress_callback=progress_wrapper)
    except Exception as e:
        raise gr.Error(f"Setup Failed: {str(e)}")

    session = {"state": app_state, "dispatcher": service.wire_events(analysis_service, app_state)}

    progress(0.5, desc="Computing time series...")
    service.compute_series(analysis_service, app_state)

    progress(0.8, desc="Rendering map layers...")
    try:
        map_html = _map_html(session)
    except Exception as e:
        map_html = f"<div style='padding:20px;color:red;'>Map generation failed: {str(e)}</div>"

    reqs = app_state.series_requests
    fig_temp = render_series(app_state.series.get("temperature"), reqs["temperature"])
    fig_rain = render_series(app_state.series.get("rainfall"), reqs["rainfall"])
    session["figures"] = [fig_temp, fig_rain]

    failed = [k for k, df in app_state.series.items() if df is None]
    status = f"✓ Analysis Complete: {app_state.study.name}"
    if failed:
        status += f" (series unavailable: {', '.join(failed)})"

    return (
        map_html,
        gr.update(choices=app_state.layers.options, value=app_state.layers.selected),
        fig_temp, fig_rain,
        _series_display(session),
        status,
        session,
    )


def on_layer_select(session, selected):
    """Show the selected composite together with the border, then re-render the map."""
    if not session or not selected:
        return gr.update(), session
    if selected == session["state"].layers.selected:
        # Unchanged selection, e.g. the value pushed by run_analysis
        return gr.update(), session
    try:
        session["dispatcher"].dispatch(SELECT, selected)
        return _map_html(session), session
    except Exception as e:
        raise gr.Error(f"Layer switch failed: {str(e)}")


def inspect_location(session, lat, lon):
    """Point query against both mean composites."""
    if not session:
        raise gr.Error("No analysis results. Run analysis first.")
    if lat is None or lon is None:
        raise gr.Error("Please enter latitude and longitude.")
    try:
        reading = session["dispatcher"].dispatch(CLICK, float(lon), float(lat))
    except Exception as e:
        raise gr.Error(f"Location query failed: {str(e)}")
    if reading is None:
        return gr.update()
    return reading.summary(session["state"].indicator_names)


def start_drive_exports(session):
    """Submit both composites as Drive export tasks."""
    if not session:
        raise gr.Error("No analysis results to export. Run analysis first.")
    try:
        task_ids = service.submit_exports(analysis_service, session["state"])
    except Exception as e:
        raise gr.Error(f"Export submission failed: {str(e)}")
    msg = "; ".join(f"{desc} (task {tid})" for desc, tid in task_ids.items())
    gr.Info(f"✅ Drive exports started: {msg}", duration=10)
    return f"Drive exports started: {msg}"


def _exports_dir() -> str:
    exports_dir = os.path.join(os.getcwd(), "exports")
    os.makedirs(exports_dir, exist_ok=True)
    return exports_dir


def export_data(session):
    """Export both series to Excel."""
    if not session:
        raise gr.Error("No analysis results to export. Run analysis first.")
    app_state = session["state"]
    study = app_state.study
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    path = os.path.join(_exports_dir(), f"{study.code}_series_{timestamp}.xlsx")

    meta = {
        "Study": study.name,
        "Country": study.country,
        "Window": f"{study.start} to {study.end}",
        "Temperature Dataset": study.indicator("temperature")["dataset"],
        "Rainfall Dataset": study.indicator("rainfall")["dataset"],
        "Timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    }
    ClimateExporter.export_excel_report(path, app_state.series, app_state.series_requests, meta)
    gr.Info(f"✅ Excel Export Saved: {path}", duration=10)
    return path


def export_plots(session):
    """Export the time-series charts as high-resolution PNGs in a ZIP."""
    if not session:
        raise gr.Error("No analysis results to export. Run analysis first.")
    app_state = session["state"]
    if not any(df is not None for df in app_state.series.values()):
        raise gr.Error("No data available for plotting.")

    reqs = app_state.series_requests
    figures = {key: render_series(app_state.series.get(key), req) for key, req in reqs.items()}
    figures["panel"] = render_series_panel(app_state.series, reqs)

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    zip_path = ClimateExporter.export_figures_zip(figures, _exports_dir(), f"{app_state.study.code}_plots_{timestamp}")
    gr.Info(f"✅ Plots Export Saved: {zip_path}", duration=10)
    return zip_path


# ===================== BUILD GRADIO UI =====================

with gr.Blocks(title="Rwanda Climate Explorer") as app:

    session_state = gr.State()

    gr.Markdown("""
    # 🌍 Climate Explorer: Land Surface Temperature & Rainfall

    MODIS land surface temperature and CHIRPS rainfall over a study region and year.
    Powered by **Google Earth Engine**.
    """)

    with gr.Row():
        with gr.Column(scale=1, min_width=300):
            gr.Markdown("### ⚙️ Configuration")

            _default_project_id = default_project_id()
            project_id_input = gr.Textbox(
                label="Google Cloud Project ID",
                placeholder="e.g., my-gcp-project-123",
                value=_default_project_id,
                info="Required: Your GCP project with Earth Engine API enabled." if not _default_project_id else "Pre-configured from environment."
            )

            study_dd = gr.Dropdown(
                choices=get_study_choices(),
                label="Study",
                interactive=True,
                value=None,
                info="Select a region/year study."
            )
            study_info = gr.Markdown("")

            run_btn = gr.Button("🚀 Run Analysis", variant="primary", size="lg")

            gr.Markdown("### 🗺️ Layer")
            layer_dd = gr.Dropdown(choices=[], label="Visible layer", interactive=True)

            gr.Markdown("### 📍 Location Analysis")
            with gr.Row():
                lat_in = gr.Number(label="Latitude", value=-1.94, precision=4)
                lon_in = gr.Number(label="Longitude", value=29.87, precision=4)
            inspect_btn = gr.Button("🔎 Inspect Point", size="sm")
            reading_out = gr.Textbox(label="Reading", interactive=False, lines=2)

            gr.Markdown("### 📤 Export")
            with gr.Row():
                drive_btn = gr.Button("☁️ Drive", size="sm")
                export_btn = gr.Button("📥 Excel", size="sm")
                export_plots_btn = gr.Button("📊 Plots", size="sm")

            export_out = gr.File(label="Download", height=60)

        with gr.Column(scale=3):
            with gr.Tabs():
                with gr.Tab("🗺️ Map"):
                    map_out = gr.HTML(value="<div style='height:700px;'></div>", elem_id="map-container")
                with gr.Tab("📈 Time Series"):
                    plot_temp_out = gr.Plot(label="Land Surface Temperature")
                    plot_rain_out = gr.Plot(label="Rainfall")
                with gr.Tab("📊 Data"):
                    stats_out = gr.DataFrame(label="Series")

            status_out = gr.Textbox(label="Status", interactive=False, lines=1)

    # Event Handlers
    study_dd.change(on_study_change, inputs=[study_dd], outputs=[study_info])

    run_btn.click(
        run_analysis,
        inputs=[project_id_input, study_dd, session_state],
        outputs=[map_out, layer_dd, plot_temp_out, plot_rain_out, stats_out, status_out, session_state]
    )

    layer_dd.change(on_layer_select, inputs=[session_state, layer_dd], outputs=[map_out, session_state])

    inspect_btn.click(inspect_location, inputs=[session_state, lat_in, lon_in], outputs=[reading_out])

    drive_btn.click(start_drive_exports, inputs=[session_state], outputs=[status_out])
    export_btn.click(export_data, inputs=[session_state], outputs=[export_out])
    export_plots_btn.click(export_plots, inputs=[session_state], outputs=[export_out])

if __name__ == "__main__":
    app.launch(theme=gr.themes.Soft())
