#!/usr/bin/env python3
"""Auto-place two screws joining two parts of a JSON assembly."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from assembly import PartIndex, load_parts_json
from fastener_placement import PlacementConfig, place_fasteners

logger = logging.getLogger("place_fasteners")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Place two screws bridging two touching wood parts"
    )
    parser.add_argument(
        "parts", help='Parts JSON file (a list or {"parts": [...]}); "-" reads stdin'
    )
    parser.add_argument(
        "--first", required=True, help="Id of the part the screws are driven through"
    )
    parser.add_argument(
        "--second", required=True, help="Id of the part the screws bite into"
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=PlacementConfig.penetration_samples,
        help="Points sampled along each screw for the true-shape check",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="On success, write the updated part list (with new screws) here",
    )
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

    config = PlacementConfig(penetration_samples=max(2, int(args.samples)))
    result = place_fasteners(args.first, args.second, parts, config=config)

    payload = {
        "ok": result.ok,
        "message": result.message,
        "reason": result.reason.value if result.reason is not None else None,
        "screwCount": result.screw_count,
        "direction": list(result.direction) if result.direction is not None else None,
        "fasteners": [fastener.to_dict() for fastener in result.fasteners],
    }
    print(json.dumps(payload, indent=2))

    if not result.ok:
        return 1
    if args.output:
        updated = [part.to_dict() for part in parts] + payload["fasteners"]
        Path(args.output).write_text(
            json.dumps({"parts": updated}, indent=2) + "\n", encoding="utf-8"
        )
        logger.info("Wrote %d parts to %s", len(updated), args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
