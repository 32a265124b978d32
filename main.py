import argparse
import logging
import os
import sys

from core.exceptions import FairingError
from geometry.entities import MeshError
from geometry.geom_io import fairing_region, load_data, parse_geometry, save_geometry
from geometry.weights import WEIGHT_PROVIDERS
from runtime.fairing import Fairer
from runtime.linear_solver import LINEAR_SOLVERS
from runtime.logging_config import setup_logging
from runtime.selection import WHOLE_MESH_POLICIES

logger = logging.getLogger("mesh_fairing")


def resolve_json_path(path: str) -> str:
    """Return a valid JSON file path, allowing path without extension."""
    if os.path.isfile(path):
        return path
    if not path.lower().endswith(".json"):
        alt = path + ".json"
        if os.path.isfile(alt):
            return alt
    raise FileNotFoundError(f"Cannot find file '{path}' or '{path}.json'")


def parse_vertex_list(text: str) -> list[int]:
    """Parse a comma-separated list of vertex IDs (``"1,2,5"``)."""
    return [int(token.strip()) for token in text.split(",") if token.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Mesh Fairing Driver")
    parser.add_argument("-i", "--input", help="Input mesh JSON/YAML file")
    parser.add_argument("-o", "--output", default=None, help="Output mesh JSON file")
    parser.add_argument(
        "--vertices",
        type=str,
        default=None,
        help="Comma-separated vertex IDs to fair. Defaults to the region "
        "stored in the input file (fair_vertices, vertices tagged 'fair', "
        "or every non-fixed vertex).",
    )
    parser.add_argument(
        "--continuity",
        type=int,
        default=None,
        help="Continuity order across the region border (0, 1 or 2).",
    )
    parser.add_argument(
        "--weights",
        choices=sorted(WEIGHT_PROVIDERS),
        default=None,
        help="Laplacian weighting scheme.",
    )
    parser.add_argument(
        "--solver",
        choices=sorted(LINEAR_SOLVERS),
        default=None,
        help="Direct linear solver used for the fairing system.",
    )
    parser.add_argument(
        "--whole-mesh-policy",
        choices=list(WHOLE_MESH_POLICIES),
        default=None,
        help="How to pin part of the region when the whole mesh is selected.",
    )
    parser.add_argument(
        "--compact-output-json",
        action="store_true",
        help="Write output JSON in compact (single-line) form.",
    )
    parser.add_argument("--log", default=None, help="Optional log file")
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Suppress console output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable verbose debug logging"
    )
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.input:
        print("No input file provided.", file=sys.stderr)
        sys.exit(1)
    try:
        args.input = resolve_json_path(args.input)
    except FileNotFoundError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)

    global logger
    logger = setup_logging(args.log, quiet=args.quiet, debug=args.debug)

    # Load mesh and parameters
    try:
        data = load_data(args.input)
        mesh = parse_geometry(data)
    except (OSError, ValueError, KeyError, TypeError, MeshError) as exc:
        logger.error("Could not read geometry from %s: %s", args.input, exc)
        sys.exit(1)

    global_params = mesh.global_parameters
    if args.weights:
        global_params.set("weighting", args.weights)
    if args.solver:
        global_params.set("linear_solver", args.solver)
    if args.whole_mesh_policy:
        global_params.set("whole_mesh_policy", args.whole_mesh_policy)
    continuity = (
        args.continuity
        if args.continuity is not None
        else global_params.get("continuity", 1)
    )

    if args.vertices:
        try:
            region = parse_vertex_list(args.vertices)
        except ValueError as exc:
            print(f"Invalid --vertices value '{args.vertices}': {exc}", file=sys.stderr)
            sys.exit(1)
    else:
        region = fairing_region(mesh)

    fixed_count = sum(1 for v in mesh.vertices.values() if v.fixed)
    logger.debug(f"Number of fixed vertices: {fixed_count} / {len(mesh.vertices)}")
    logger.debug(f"Fairing {len(region)} vertices with continuity {continuity}.")

    try:
        fairer = Fairer(mesh)
        report = fairer.run(region, continuity)
    except FairingError as exc:
        logger.error(f"Fairing failed: {exc}")
        sys.exit(1)

    if report.pruned:
        logger.info(f"Kept {len(report.pruned)} vertices fixed: {report.pruned}")

    if args.output:
        save_geometry(mesh, args.output, compact=args.compact_output_json)
        logger.info(f"Fairing complete. Output saved to {args.output}")
    else:
        logger.info("Fairing complete. No output file written.")


if __name__ == "__main__":
    main()
