#!/usr/bin/env python3
"""Score the structural stability of an assembly described as JSON parts."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from assembly import PartIndex, load_parts_json
from contact_graph import AllPairs, KDTreePairs
from heat_colors import heat_color
from structural_scoring import STRESS_PROFILES, analyze

logger = logging.getLogger("analyze_assembly")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Structural integrity report for a wood assembly"
    )
    parser.add_argument(
        "parts", help='Parts JSON file (a list or {"parts": [...]}); "-" reads stdin'
    )
    parser.add_argument(
        "--scenario",
        default="baseline",
        choices=sorted(STRESS_PROFILES),
        help="Stress scenario to simulate",
    )
    parser.add_argument(
        "--intensity",
        type=float,
        default=0.6,
        help="Stress intensity, 0-1",
    )
    parser.add_argument(
        "--kdtree",
        action="store_true",
        help="Use the KD-tree pair source instead of all pairs",
    )
    parser.add_argument(
        "--heat", action="store_true", help="Include a heat color per part"
    )
    parser.add_argument("--output", default=None, help="Write the report here")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        parts = load_parts_json(args.parts)
    except (OSError, ValueError) as exc:
        print(f"error: could not load parts: {exc}", file=sys.stderr)
        return 2

    _, problems = PartIndex(parts).validate()
    for problem in problems:
        logger.warning(problem)

    report = analyze(
        parts,
        stress_scenario=args.scenario,
        stress_intensity=args.intensity,
        pair_source=KDTreePairs() if args.kdtree else AllPairs(),
    )
    payload = report.to_dict()
    if args.heat:
        payload["heatColors"] = {
            part_id: heat_color(score) for part_id, score in report.part_scores.items()
        }

    text = json.dumps(payload, indent=2)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote report to %s", args.output)
    print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
