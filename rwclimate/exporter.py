# rwclimate/exporter.py
"""
Export Module
Submits Earth Engine Drive exports of the composites and writes local
Excel/PNG reports of the time series.
"""

import os
import zipfile
from typing import Any, Dict, List

import matplotlib.pyplot as plt
import pandas as pd

from rwclimate.builders import ExportRequest, SeriesRequest
from rwclimate.constants import COLUMN_NAMES, COLUMN_DESCRIPTIONS


def submit_drive_exports(analysis, region, composites: Dict[str, Any], requests: List[ExportRequest]) -> Dict[str, str]:
    """
    Fire-and-forget: starts one Drive export per request and returns
    {description: task id}. Job progress is tracked by Earth Engine, not here.
    """
    task_ids = {}
    for req in requests:
        if req.composite_key not in composites:
            raise ValueError(f"No composite '{req.composite_key}' to export for {req.description}")
        task_ids[req.description] = analysis.start_export(composites[req.composite_key], req, region)
    return task_ids


class ClimateExporter:
    """
    Handles export of fetched time series to local formats (Excel, PNG).
    """

    @staticmethod
    def series_table(series: Dict[str, pd.DataFrame], requests: Dict[str, SeriesRequest]) -> pd.DataFrame:
        """Long-format table of every series with its reduction settings."""
        frames = []
        for key, df in series.items():
            if df is None or df.empty:
                continue
            req = requests[key]
            out = df[["date", "value"]].copy()
            out["indicator"] = key
            out["reducer"] = req.reducer
            out["scale_m"] = req.scale_m
            frames.append(out)
        if not frames:
            return pd.DataFrame(columns=["date", "value", "indicator", "reducer", "scale_m"])
        return pd.concat(frames, ignore_index=True)

    @staticmethod
    def export_excel_report(output_path: str,
                            series: Dict[str, pd.DataFrame],
                            requests: Dict[str, SeriesRequest],
                            metadata_dict: Dict[str, Any]) -> str:
        """
        Generates a multi-sheet Excel report.

        Sheets:
        1. <Indicator>_Series - one per indicator, date-sorted
        2. Metadata - Study metadata
        3. Data_Dictionary - Column definitions
        """
        meta_df = pd.DataFrame({
            'Parameter': list(metadata_dict.keys()),
            'Value': [str(v) for v in metadata_dict.values()]
        })

        dict_rows = []
        for col, friendly in COLUMN_NAMES.items():
            dict_rows.append({
                'Programmatic Name': col,
                'User-Friendly Name': friendly,
                'Description': COLUMN_DESCRIPTIONS.get(col, '')
            })
        dict_df = pd.DataFrame(dict_rows)

        table = ClimateExporter.series_table(series, requests)

        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            for key in requests:
                sub = table[table["indicator"] == key].sort_values("date").reset_index(drop=True)
                sub.to_excel(writer, sheet_name=f"{key.capitalize()}_Series", index=False)
            meta_df.to_excel(writer, sheet_name='Metadata', index=False)
            dict_df.to_excel(writer, sheet_name='Data_Dictionary', index=False)

        return output_path

    @staticmethod
    def export_figures_zip(figures: Dict[str, Any], exports_dir: str, stem: str, dpi: int = 300) -> str:
        """Saves each figure as PNG and bundles them into ``<stem>.zip``."""
        os.makedirs(exports_dir, exist_ok=True)
        zip_path = os.path.join(exports_dir, f"{stem}.zip")
        with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zf:
            for name, fig in figures.items():
                if fig is None:
                    continue
                png_path = os.path.join(exports_dir, f"{stem}_{name}.png")
                fig.savefig(png_path, format='png', dpi=dpi, bbox_inches='tight', facecolor='white')
                plt.close(fig)
                zf.write(png_path, os.path.basename(png_path))
                os.remove(png_path)  # Clean up individual file
        return zip_path
