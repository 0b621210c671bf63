"""
Parameter set for the deformed cylinder.

A ParameterSet is plain, immutable data. Nothing is checked on construction;
``validate()`` runs at the start of every build so an out-of-range value is
reported before any geometry exists. The reference UI exposes sliders with
bounds of its own (segments 3..64, everything else 0..5); those are display
conventions and are never applied here.

Keys can be given snake_case (Python) or camelCase (what a browser front end
sends):

    params = ParameterSet.from_mapping({"radiusTop": 2, "twist": 1.2})
    params = load_params("shape.json")
"""
from __future__ import annotations

import json
import math
import numbers
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping

from .errors import InvalidParameter

# camelCase -> field name
ALIASES: Dict[str, str] = {
    "radiusTop": "radius_top",
    "radiusBottom": "radius_bottom",
    "height": "height",
    "radialSegments": "radial_segments",
    "heightSegments": "height_segments",
    "openEnded": "open_ended",
    "thetaStart": "theta_start",
    "thetaLength": "theta_length",
    "ellipticity": "ellipticity",
    "obliqueness": "obliqueness",
    "twist": "twist",
}

# Keys a viewer mixes into the same record; they never affect geometry.
DISPLAY_ONLY_KEYS = frozenset({"wireframe"})


@dataclass(frozen=True)
class ParameterSet:
    radius_top: float = 1.0
    radius_bottom: float = 1.0
    height: float = 1.0
    radial_segments: int = 32
    height_segments: int = 1
    open_ended: bool = False
    theta_start: float = 0.0
    theta_length: float = 2 * math.pi
    ellipticity: float = 1.0
    obliqueness: float = 0.0
    twist: float = 0.0

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "ParameterSet":
        """Build from a dict, filling omitted fields with defaults."""
        return cls(**field_values(mapping))

    def to_dict(self, camel: bool = False) -> Dict[str, Any]:
        data = asdict(self)
        if camel:
            reverse = {v: k for k, v in ALIASES.items()}
            data = {reverse[k]: v for k, v in data.items()}
        return data

    def updated(self, **changes: Any) -> "ParameterSet":
        return replace(self, **changes)

    def validate(self) -> "ParameterSet":
        """Check every field and return a normalised copy.

        Segment counts come back as ``int`` even when given as integral floats
        (a range slider reports ``3.0``). Raises InvalidParameter on the first
        violation.
        """
        radius_top = _real("radius_top", self.radius_top)
        if not radius_top >= 0:
            raise InvalidParameter("radius_top", self.radius_top, ">= 0")
        radius_bottom = _real("radius_bottom", self.radius_bottom)
        if not radius_bottom >= 0:
            raise InvalidParameter("radius_bottom", self.radius_bottom, ">= 0")
        height = _real("height", self.height)
        if not height > 0:
            raise InvalidParameter("height", self.height, "> 0")
        ellipticity = _real("ellipticity", self.ellipticity)
        # 0 is accepted; the mesh gets non-finite coordinates (Mesh.is_finite)
        if not ellipticity >= 0:
            raise InvalidParameter("ellipticity", self.ellipticity, ">= 0")
        if not isinstance(self.open_ended, bool):
            raise InvalidParameter("open_ended", self.open_ended, "a bool")
        return replace(
            self,
            radius_top=radius_top,
            radius_bottom=radius_bottom,
            height=height,
            radial_segments=_segments("radial_segments", self.radial_segments, 3),
            height_segments=_segments("height_segments", self.height_segments, 1),
            theta_start=_real("theta_start", self.theta_start),
            theta_length=_real("theta_length", self.theta_length),
            ellipticity=ellipticity,
            obliqueness=_real("obliqueness", self.obliqueness),
            twist=_real("twist", self.twist),
        )


# -------------------------
# Small helpers
# -------------------------

def field_values(mapping: Mapping[str, Any]) -> Dict[str, Any]:
    """Map snake_case or camelCase keys to field names.

    Display-only keys are dropped. Unknown keys, and a field given under both
    of its names, raise InvalidParameter.
    """
    names = {f.name for f in fields(ParameterSet)}
    out: Dict[str, Any] = {}
    for key, value in mapping.items():
        if key in DISPLAY_ONLY_KEYS:
            continue
        name = ALIASES.get(key, key)
        if name not in names:
            raise InvalidParameter(key, value, "a known parameter name")
        if name in out:
            raise InvalidParameter(key, value, f"given only once (also set as {name!r} or its alias)")
        out[name] = value
    return out


def _real(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidParameter(name, value, "a real number")
    x = float(value)
    if not math.isfinite(x):
        raise InvalidParameter(name, value, "finite")
    return x


def _segments(name: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool):
        raise InvalidParameter(name, value, "an integer")
    if isinstance(value, numbers.Integral):
        n = int(value)
    elif isinstance(value, numbers.Real) and float(value).is_integer():
        n = int(value)
    else:
        raise InvalidParameter(name, value, "an integer")
    if n < minimum:
        raise InvalidParameter(name, value, f">= {minimum}")
    return n


# -------------------------
# JSON config files
# -------------------------

def load_params(path: str) -> ParameterSet:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidParameter("params", path, f"valid JSON ({e.msg} at line {e.lineno})") from None
    if not isinstance(data, dict):
        raise InvalidParameter("params", type(data).__name__, "a JSON object")
    return ParameterSet.from_mapping(data)


def save_params(path: str, params: ParameterSet, camel: bool = True) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(params.to_dict(camel=camel), f, indent=2)
