# rwclimate/legend.py
"""Static map legend: labeled color swatches for both climate indicators."""

from dataclasses import dataclass
from typing import List, Tuple

from rwclimate.constants import TEMPERATURE_LEGEND_ROWS, RAINFALL_LEGEND_ROWS


@dataclass(frozen=True)
class LegendRow:
    color: str
    name: str
    value: str = ""

    @property
    def label(self) -> str:
        return self.name + (f": {self.value}" if self.value else "")


@dataclass(frozen=True)
class LegendSection:
    title: str
    rows: Tuple[LegendRow, ...]


@dataclass(frozen=True)
class Legend:
    title: str
    sections: Tuple[LegendSection, ...]
    position: str = "bottomright"

    @property
    def rows(self) -> List[LegendRow]:
        return [row for section in self.sections for row in section.rows]


def climate_legend(year: int) -> Legend:
    return Legend(
        title=f"Climate Indicators {year}",
        sections=(
            LegendSection("Temperature (°C)", tuple(LegendRow(*r) for r in TEMPERATURE_LEGEND_ROWS)),
            LegendSection("Rainfall (mm)", tuple(LegendRow(*r) for r in RAINFALL_LEGEND_ROWS)),
        ),
    )


def legend_html(legend: Legend, floating: bool = True, right: int = 15, bottom: int = 30) -> str:
    """
    Legend panel as HTML. ``floating`` positions it absolutely inside a map wrapper
    (folium output); ipyleaflet WidgetControls place it themselves.
    """
    sections = ""
    for section in legend.sections:
        rows = ''.join([f'''<div style="display:flex;align-items:center;margin:0 0 4px 0;">
            <span style="display:inline-block;width:16px;height:16px;background:{row.color};border:1px solid #999;margin-right:5px;"></span>
            <span style="font-size:11px;color:#333;">{row.label}</span></div>''' for row in section.rows])
        sections += f'''
          <div style="font-weight:600; font-size:12px; color:#333; margin:10px 0 3px 0;">{section.title}</div>
          {rows}'''

    position = f"position:absolute; bottom:{bottom}px; right:{right}px; z-index:1000;" if floating else ""
    return f'''
        <div style="{position} padding:8px 15px; background:white; border:1px solid #999;
                    border-radius:4px; font-family:Arial,sans-serif; box-shadow:0 2px 6px rgba(0,0,0,0.2);">
          <div style="font-weight:bold; font-size:16px; color:#333; margin:0 0 10px 0;">{legend.title}</div>
          {sections}
        </div>'''
