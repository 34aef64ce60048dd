from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Iterable, Mapping

from ..components.registry import names
from ..core.errors import SpecificationError
from ..core.theme import LEGEND_POSITIONS

_REQUIRED_LAYER = ("geom",)
_STAGED = ("after_stat", "after_scale")

_DEFAULTS: Dict[str, Any] = {
    "data": None,
    "mapping": {},
    "layers": [],
    "scales": [],
    "coord": {"name": "cartesian", "params": {}},
    "facet": {"name": "null", "params": {}},
    "labels": {},
    "theme": {},
    "guides": {},
    "canvas": {"width_in": 7.0, "height_in": 5.0, "dpi": 100},
}


def _deep_merge(base: Dict[str, Any], upd: Mapping[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in (upd or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _ensure(condition: bool, message: str) -> None:
    if not condition:
        raise SpecificationError(message)


def _validate_mapping(mapping: Any, where: str) -> None:
    _ensure(isinstance(mapping, dict), f"{where} must be object")
    for name, value in mapping.items():
        if isinstance(value, dict):
            staged = [key for key in _STAGED if key in value]
            _ensure(len(staged) == 1 and len(value) == 1, f"{where}.{name} must be {{'after_stat'|'after_scale': expr}}")
            _ensure(isinstance(value[staged[0]], str), f"{where}.{name}.{staged[0]} must be a string expression")
            continue
        _ensure(
            isinstance(value, (str, int, float, bool, list)),
            f"{where}.{name} must be a column expression, a constant or a list of values",
        )


def _validate_component(entry: Any, role: str, where: str) -> None:
    _ensure(isinstance(entry, dict), f"{where} must be object")
    name = entry.get("name")
    _ensure(name in names(role), f"{where}.name '{name}' unsupported; expected one of {names(role)}")
    _ensure(isinstance(entry.get("params", {}), dict), f"{where}.params must be object")


def _validate_layers(layers: Iterable[Any]) -> None:
    for idx, layer in enumerate(layers):
        _ensure(isinstance(layer, dict), f"layers[{idx}] must be object")
        for field in _REQUIRED_LAYER:
            _ensure(field in layer, f"layers[{idx}] missing '{field}'")
        _ensure(layer["geom"] in names("geom"), f"layers[{idx}].geom '{layer['geom']}' unsupported")
        for role in ("stat", "position"):
            value = layer.get(role)
            if value is None:
                continue
            name = value.get("name") if isinstance(value, dict) else value
            _ensure(name in names(role), f"layers[{idx}].{role} '{name}' unsupported")
        if "mapping" in layer:
            _validate_mapping(layer["mapping"], f"layers[{idx}].mapping")
        _ensure(isinstance(layer.get("params", {}), dict), f"layers[{idx}].params must be object")
        key_glyph = layer.get("key_glyph")
        _ensure(key_glyph is None or key_glyph in names("key"), f"layers[{idx}].key_glyph '{key_glyph}' unsupported")


def _validate_scales(scales: Iterable[Any]) -> None:
    for idx, scale in enumerate(scales):
        _ensure(isinstance(scale, dict), f"scales[{idx}] must be object")
        _ensure(isinstance(scale.get("aesthetic"), str), f"scales[{idx}] missing 'aesthetic'")
        _ensure(isinstance(scale.get("params", {}), dict), f"scales[{idx}].params must be object")


def validate_spec(spec: Dict[str, Any]) -> Dict[str, Any]:
    """Check a declarative plot document and fill in its defaults."""

    _ensure(isinstance(spec, dict), "spec must be a mapping")
    layers = spec.get("layers")
    _ensure(isinstance(layers, list) and layers, "spec.layers must be non-empty list")
    _validate_layers(layers)

    _validate_mapping(spec.get("mapping", {}), "spec.mapping")
    _ensure(isinstance(spec.get("scales", []), list), "spec.scales must be list")
    _validate_scales(spec.get("scales", []))
    for role in ("coord", "facet"):
        if role in spec:
            _validate_component(spec[role], role, f"spec.{role}")
    for field in ("labels", "theme", "guides", "canvas"):
        _ensure(isinstance(spec.get(field, {}), dict), f"spec.{field} must be object")
    for aesthetic, guide in spec.get("guides", {}).items():
        _ensure(guide in names("guide"), f"spec.guides.{aesthetic} '{guide}' unsupported")
    position = spec.get("theme", {}).get("legend.position", "right")
    _ensure(position in LEGEND_POSITIONS, f"spec.theme.legend.position '{position}' unsupported")
    data = spec.get("data")
    _ensure(data is None or isinstance(data, (list, dict)), "spec.data must be a list of records or a column mapping")

    merged = _deep_merge(_DEFAULTS, spec)
    return merged
