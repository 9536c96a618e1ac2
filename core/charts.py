from __future__ import annotations

from typing import Any, Dict, Mapping

import altair as alt

alt.data_transformers.disable_max_rows()

NEUTRAL_GRAY = "#6B7280"


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def fixed_color_scale(colors: Mapping[str, str]) -> alt.Scale:
    """Pin each category to its display color instead of the default palette."""
    return alt.Scale(domain=list(colors.keys()), range=list(colors.values()))
