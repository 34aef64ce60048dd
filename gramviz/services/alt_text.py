from __future__ import annotations

from typing import Any, Dict, List

from jinja2 import Template

from ..pipeline.aes import label_of

_TEMPLATE = Template(
    "{{ layers|length }}-layer plot{% if title %} titled \"{{ title }}\"{% endif %}"
    " in {{ panels }} panel{{ 's' if panels != 1 else '' }}."
    "{% for layer in layers %} {{ loop.index }}) {{ layer.geom }} of {{ layer.rows }} rows"
    "{% if layer.mapping %} mapping {{ layer.mapping }}{% endif %}"
    "{% if layer.removed %}, {{ layer.removed }} rows dropped{% endif %}.{% endfor %}"
    "{% for scale in scales %} {{ scale.aesthetic }}: {{ scale.description }}.{% endfor %}"
)


def _describe_scale(row: Dict[str, Any]) -> str:
    limits = row.get("limits") or []
    if row["discrete"]:
        shown = ", ".join(str(v) for v in limits[:6])
        more = f" and {len(limits) - 6} more" if len(limits) > 6 else ""
        return f"{len(limits)} levels ({shown}{more})"
    if len(limits) == 2:
        return f"from {limits[0]:.4g} to {limits[1]:.4g}"
    return "untrained"


def alt_text(built: Any) -> str:
    """Plain-language description of a built plot."""

    layers: List[Dict[str, Any]] = []
    for layer, data, params in zip(built.layers, built.data, built.layer_params):
        layers.append(
            {
                "geom": layer.geom.call.replace("geom_", ""),
                "rows": len(data),
                "mapping": ", ".join(f"{name}={label_of(value)}" for name, value in params.mapping.items()),
                "removed": built.diagnostics.removed_rows(params.index),
            }
        )
    scales = []
    for row in built.scales.summary():
        if row["aesthetic"] in ("x", "y"):
            continue
        scales.append({"aesthetic": row["aesthetic"], "description": _describe_scale(row)})
    ranges = built.layout.range_summary()
    for aesthetic in ("x", "y"):
        if ranges[aesthetic]:
            low, high = ranges[aesthetic][0]
            scales.append({"aesthetic": aesthetic, "description": f"from {low:.4g} to {high:.4g}"})
    return _TEMPLATE.render(
        title=built.labels.get("title"),
        panels=len(built.layout.panel_ids()),
        layers=layers,
        scales=scales,
    )
