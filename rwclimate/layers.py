# rwclimate/layers.py
"""
Map layer stack and the select-driven visibility rule.

The stack is ordered bottom to top: region outline, temperature composite,
rainfall composite. Selecting a composite shows it together with the outline and
hides every other layer; the outline is pinned visible.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rwclimate.config import INDICATORS, StudyConfig
from rwclimate.constants import BORDER_VIS, MAP_ZOOM, MAP_BASEMAP
from rwclimate.legend import Legend, legend_html


@dataclass
class LayerSpec:
    name: str
    source_key: Optional[str]  # None for the region outline, else the composite key
    vis: Dict[str, Any] = field(default_factory=dict)
    shown: bool = True

    @property
    def is_outline(self) -> bool:
        return self.source_key is None


def border_layer_name(study: StudyConfig) -> str:
    return f"{study.country} Border"


def build_layer_specs(study: StudyConfig) -> List[LayerSpec]:
    specs = [LayerSpec(border_layer_name(study), None, dict(BORDER_VIS), True)]
    for i, key in enumerate(INDICATORS):
        ind = study.indicator(key)
        # Only the first composite starts visible.
        specs.append(LayerSpec(ind["label"], key, dict(ind["vis"]), i == 0))
    return specs


class LayerStack:
    """Ordered layers plus visibility state, mutated only through select()."""

    def __init__(self, specs: List[LayerSpec]):
        outlines = [s for s in specs if s.is_outline]
        if len(outlines) != 1:
            raise ValueError(f"Layer stack needs exactly one outline layer, got {len(outlines)}")
        self.layers = list(specs)
        self.pinned = outlines[0].name
        initial = [s.name for s in specs if not s.is_outline and s.shown]
        self.selected: Optional[str] = initial[0] if initial else None

    @property
    def names(self) -> List[str]:
        return [s.name for s in self.layers]

    @property
    def options(self) -> List[str]:
        """Select-control options: the composite layers, in stack order."""
        return [s.name for s in self.layers if not s.is_outline]

    def visible_names(self) -> List[str]:
        return [s.name for s in self.layers if s.shown]

    def get(self, name: str) -> LayerSpec:
        for s in self.layers:
            if s.name == name:
                return s
        raise KeyError(name)

    def select(self, selected: str) -> List[str]:
        """Shows exactly the selected layer and the outline. Returns the visible names."""
        if selected not in self.options:
            raise ValueError(f"Unknown layer '{selected}'. Options: {self.options}")
        for s in self.layers:
            s.shown = s.name == selected or s.name == self.pinned
        self.selected = selected
        return self.visible_names()


def add_layers(m, stack: LayerStack, region, composites: Dict[str, Any], add_layer=None) -> None:
    """
    Adds every layer of the stack to a geemap map (folium or ipyleaflet) in order.
    ``add_layer`` lets callers substitute a retrying variant of ``m.addLayer``.
    """
    add = add_layer or m.addLayer
    for spec in stack.layers:
        source = region if spec.is_outline else composites[spec.source_key]
        add(source, spec.vis, spec.name, spec.shown)


def sync_visibility(m, stack: LayerStack) -> None:
    """Pushes the stack's visibility onto an ipyleaflet map's existing layers by name."""
    shown = set(stack.visible_names())
    for layer in m.layers:
        name = getattr(layer, "name", None)
        if name in stack.names:
            layer.visible = name in shown


def render_map_html(analysis, stack: LayerStack, region, composites: Dict[str, Any],
                    legend: Legend, height: str = "700px") -> str:
    """Generate interactive folium map with the layer stack and the legend panel."""
    m = analysis.geemap_map(height=height)

    try:
        m.add_basemap(MAP_BASEMAP)
    except Exception as e:
        print(f"[WARN] Basemap {MAP_BASEMAP} unavailable: {e}")

    def _add_layer_with_retry(image, vis, name, shown=True):
        if vis and "palette" in vis:
            # Preflight tile creation so transient 429s don't leave the layer blank
            try:
                analysis._ee_get_mapid(image, vis)
            except Exception as e:
                print(f"[WARN] Tile preflight failed for {name}: {e}")
        m.addLayer(image, vis, name, shown)

    try:
        add_layers(m, stack, region, composites, add_layer=_add_layer_with_retry)
        m.centerObject(region, MAP_ZOOM)
        m.addLayerControl()
    except Exception as e:
        print(f"[WARN] Map layer error: {e}")
        m.centerObject(region, MAP_ZOOM)

    base_html = m._repr_html_()
    base_html = base_html.replace(f'height:{height}', 'height:100%').replace(f'height: {height}', 'height:100%')

    return f'''
    <div style="position:relative; width:100%; height:{height};">
        <div style="position:absolute; top:0; left:0; right:0; bottom:0; height:100% !important;">
            {base_html}
        </div>
        {legend_html(legend)}
    </div>'''
