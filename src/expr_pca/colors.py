"""Colour and marker per sample class for the scatter plot."""

from itertools import cycle
from typing import Dict, Optional, Sequence, Tuple

from plotly import colors as plotly_colors

# First two classes keep the classic normal vs. tumour look: green dots, red triangles.
DEFAULT_CLASS_STYLES = [("#2ca02c", "circle"), ("#d62728", "triangle-up")]
MARKER_SYMBOLS = ["circle", "triangle-up", "square", "diamond", "cross", "x", "star", "pentagon"]
UNLABELLED_COLOR = "#bbbbbb"


def class_style_map(
        classes: Sequence[str],
        color_map: Optional[Dict[str, str]] = None,
        palette: Optional[Sequence[str]] = None,
) -> Dict[str, Tuple[str, str]]:
    """
    ``{label: (color, marker_symbol)}`` for every distinct class, in order of appearance.

    Colours from ``color_map`` win. The first two classes otherwise get the
    default green/red, the rest are filled from ``palette`` (plotly's
    qualitative palette by default), skipping colours already taken while
    unused ones remain. Markers cycle through MARKER_SYMBOLS by class position.
    """
    classes = list(dict.fromkeys(classes))
    colors = {cls: c for cls, c in (color_map or {}).items() if cls in classes}
    for cls, (color, _) in zip(classes, DEFAULT_CLASS_STYLES):
        colors.setdefault(cls, color)

    missing = [cls for cls in classes if cls not in colors]
    if missing:
        palette = list(palette or plotly_colors.qualitative.Plotly)
        taken = {c.lower() for c in colors.values()}
        free = [c for c in palette if c.lower() not in taken] or palette
        for cls, color in zip(missing, cycle(free)):
            colors[cls] = color

    return {
        cls: (colors[cls], MARKER_SYMBOLS[i % len(MARKER_SYMBOLS)])
        for i, cls in enumerate(classes)
    }
