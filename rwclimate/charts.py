# rwclimate/charts.py
"""Time-series charts of the region-reduced indicator values."""

from typing import Dict, Iterable, Optional

import matplotlib.dates as mdates
import matplotlib.pyplot as plt
import pandas as pd

from rwclimate.builders import SeriesRequest


def _style_axis(ax, df: pd.DataFrame, request: SeriesRequest) -> None:
    ax.plot(df["date"], df["value"], color=request.color, linewidth=request.line_width)
    # pointSize is a radius in pixels; scatter takes an area
    ax.scatter(df["date"], df["value"], s=request.point_size ** 2, color=request.color, zorder=3)
    ax.set_title(request.title)
    ax.set_xlabel(request.x_title)
    ax.set_ylabel(request.y_title)
    ax.xaxis.set_major_locator(mdates.MonthLocator())
    ax.xaxis.set_major_formatter(mdates.DateFormatter(request.date_format))
    ax.grid(True, linestyle=":", alpha=0.5)
    ax.margins(x=0.02)
    if df.empty:
        ax.text(0.5, 0.5, "No images in the selected window", ha="center", va="center",
                transform=ax.transAxes, color="#666")


def render_series(df: Optional[pd.DataFrame], request: SeriesRequest, figsize=(8, 3.6)):
    """One chart point per source image; x axis labelled month-year."""
    if df is None:
        return None
    fig, ax = plt.subplots(figsize=figsize, constrained_layout=True)
    _style_axis(ax, df, request)
    fig.autofmt_xdate(rotation=0, ha="center")
    return fig


def render_series_panel(series: Dict[str, pd.DataFrame], requests: Dict[str, SeriesRequest], figsize=(8, 7.2)):
    """Stacked charts for every indicator, used for the PNG export."""
    keys = [k for k in requests if series.get(k) is not None]
    if not keys:
        return None
    fig, axes = plt.subplots(len(keys), 1, figsize=figsize, constrained_layout=True, squeeze=False)
    for ax, key in zip(axes[:, 0], keys):
        _style_axis(ax, series[key], requests[key])
    return fig


def close_figures(figures: Iterable) -> None:
    """Releases pyplot figures once a front-end no longer displays them."""
    for fig in figures:
        if fig is not None:
            plt.close(fig)
