"""
Command line entry point.

    python -m nodalsim MODEL.json [--margin M] [--limit N] [--output PATH] [--verbose]

Reads a model document, solves it and writes the solution next to the model
as ``MODEL.soln.json`` (or to ``--output``).
"""
from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from nodalsim.errors import NodalSimError
from nodalsim.network.model import NodalAnalysisModel
from nodalsim.solver.newton import NewtonConfig

logger = logging.getLogger("nodalsim")


def default_output(model_path: Path) -> Path:
    name = model_path.name
    if name.endswith(".json"):
        return model_path.with_name(name[: -len(".json")] + ".soln.json")
    return model_path.with_name(name + ".soln.json")


def build_parser() -> argparse.ArgumentParser:
    defaults = NewtonConfig()
    parser = argparse.ArgumentParser(prog="nodalsim", description="Solve a nodal analysis model.")
    parser.add_argument("model", type=Path, help="Path to the model document (JSON).")
    parser.add_argument(
        "--margin", type=float, default=defaults.margin,
        help=f"Convergence threshold on the largest residual (default: {defaults.margin}).",
    )
    parser.add_argument(
        "--limit", type=int, default=defaults.limit,
        help=f"Maximum number of Newton iterations (default: {defaults.limit}).",
    )
    parser.add_argument("--output", type=Path, default=None, help="Solution file (default: MODEL.soln.json).")
    parser.add_argument("--verbose", action="store_true", help="Log every solver iteration.")
    return parser


def main(argv: List[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    output = args.output or default_output(args.model)
    try:
        model = NodalAnalysisModel.from_file(args.model)
        logger.info("Loaded %s model with %d nodes from %s.", model.model_type, model.nodes, args.model)
        result = model.run_study(margin=args.margin, limit=args.limit)
        output.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
    except OSError as exc:
        logger.error("Could not read or write a file: %s", exc)
        return 1
    except NodalSimError as exc:
        logger.error("Failed to solve %s: %s", args.model, exc)
        return 1
    logger.info("Solution written to %s.", output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
