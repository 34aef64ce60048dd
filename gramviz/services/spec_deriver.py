from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from ..components.registry import SCALES, lookup
from ..core.errors import SpecificationError
from ..core.theme import Theme
from ..pipeline.aes import Aes, after_scale, after_stat
from ..pipeline.layer import layer
from ..pipeline.plot import Specification
from .spec_validator import validate_spec

_STAGES = {"after_stat": after_stat, "after_scale": after_scale}


def _mapping(raw: Optional[Dict[str, Any]]) -> Aes:
    mapping: Dict[str, Any] = {}
    for name, value in (raw or {}).items():
        if isinstance(value, dict):
            stage, source = next(iter(value.items()))
            mapping[name] = _STAGES[stage](source)
        else:
            mapping[name] = value
    return Aes(mapping)


def _frame(raw: Any) -> Optional[pd.DataFrame]:
    if raw is None:
        return None
    if isinstance(raw, pd.DataFrame):
        return raw
    try:
        return pd.DataFrame(raw)
    except ValueError as exc:
        raise SpecificationError(f"spec.data cannot be read as a table: {exc}") from exc


def _scale_name(entry: Dict[str, Any]) -> str:
    aesthetic = str(entry["aesthetic"]).replace("color", "colour")
    kind = entry.get("kind")
    if kind:
        return f"{aesthetic}_{kind}"
    if aesthetic in SCALES:
        return aesthetic
    return f"{aesthetic}_continuous"


def _component(role: str, entry: Any) -> Any:
    if isinstance(entry, dict):
        return lookup(role, entry["name"], **entry.get("params", {}))
    return lookup(role, entry)


def derive_spec(document: Dict[str, Any], data: Optional[pd.DataFrame] = None) -> Specification:
    """Turn a declarative plot document into a Specification."""

    doc = validate_spec(document)
    layers = []
    for entry in doc["layers"]:
        layers.append(
            layer(
                entry["geom"],
                stat=_component("stat", entry["stat"]) if entry.get("stat") else None,
                position=_component("position", entry["position"]) if entry.get("position") else None,
                mapping=_mapping(entry.get("mapping")) if "mapping" in entry else None,
                params=entry.get("params") or {},
                inherit_aes=bool(entry.get("inherit_aes", True)),
                show_legend=entry.get("show_legend"),
                key_glyph=entry.get("key_glyph"),
                name=entry.get("name"),
            )
        )
    scales = [lookup("scale", _scale_name(entry), **entry.get("params", {})) for entry in doc["scales"]]

    spec = Specification(
        data=data if data is not None else _frame(doc["data"]),
        mapping=_mapping(doc["mapping"]),
        coord=_component("coord", doc["coord"]),
        facet=_component("facet", doc["facet"]),
        labels=doc["labels"],
        theme=Theme(doc["theme"]),
        guides=doc["guides"],
    )
    spec = spec + layers + scales
    return spec.validate()
