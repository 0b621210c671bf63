from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from .analysis import summary
from .cylinder import build_mesh
from .errors import MeshError
from .exporters import FORMATS, save_mesh
from .params import ParameterSet, load_params

logger = logging.getLogger(__name__)

_DEF_HELP = """
Examples:
  pycylinder --out cyl.obj
  pycylinder --radius-top 0.5 --radius-bottom 1.5 --height 2 --out taper.stl
  pycylinder --ellipticity 2 --twist 1.57 --height-segments 16 --out twisted.glb
  pycylinder --params shape.json --obliqueness 0.4 --summary
"""

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# flag dest -> ParameterSet field
_FIELD_FLAGS = {
    "radius_top": float,
    "radius_bottom": float,
    "height": float,
    "radial_segments": int,
    "height_segments": int,
    "theta_start": float,
    "theta_length": float,
    "ellipticity": float,
    "obliqueness": float,
    "twist": float,
}


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pycylinder", description="pycylinder: deformed cylinder mesh generator",
                                epilog=_DEF_HELP, formatter_class=argparse.RawTextHelpFormatter)
    p.add_argument("--params", help="JSON file with a parameter set (camelCase or snake_case keys)")
    for dest, kind in _FIELD_FLAGS.items():
        p.add_argument("--" + dest.replace("_", "-"), dest=dest, type=kind, default=None)
    p.add_argument("--open-ended", dest="open_ended", action=argparse.BooleanOptionalAction, default=None)
    p.add_argument("--name", default="custom_cylinder")
    p.add_argument("--out", help="Output path (.obj/.stl/.ply/.gltf/.glb)")
    p.add_argument("--format", choices=FORMATS, help="Force output format instead of using the extension")
    p.add_argument("--summary", action="store_true", help="Print mesh statistics as JSON")
    p.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS,
                   default=os.environ.get("LOG_LEVEL", "WARNING").upper(),
                   help="Logging level (default: $LOG_LEVEL or WARNING)")
    return p


def params_from_args(args: argparse.Namespace) -> ParameterSet:
    base = load_params(args.params) if args.params else ParameterSet()
    overrides: Dict[str, Any] = {}
    for dest in list(_FIELD_FLAGS) + ["open_ended"]:
        value = getattr(args, dest)
        if value is not None:
            overrides[dest] = value
    return base.updated(**overrides) if overrides else base


def main(argv: Optional[List[str]] = None) -> int:
    p = build_arg_parser()
    args = p.parse_args(argv)
    logging.basicConfig(level=args.log_level)

    try:
        params = params_from_args(args)
        mesh = build_mesh(params, name=args.name)
        if args.out:
            fmt = save_mesh(args.out, mesh, args.format)
            logger.info("wrote %s (%s)", args.out, fmt)
    except MeshError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if not mesh.is_finite():
        logger.warning("%d vertices have non-finite coordinates", len(mesh.non_finite_vertices()))
    if args.summary or not args.out:
        print(json.dumps(summary(mesh), indent=2, allow_nan=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
