"""Command-line entry point: render a mosaic PNG, optionally dumping animation frames."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from polyart.config import settings
from polyart.engine.imaging import load_image
from polyart.engine.session import SessionManager, export_png, play

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="polyart", description="Render a low-poly mosaic of an image.")
    parser.add_argument("input", type=Path, help="Source image (PNG, JPEG, ...)")
    parser.add_argument("-o", "--output", type=Path, required=True, help="Output PNG path")
    parser.add_argument("-q", "--quality", type=int, default=settings.default_quality, help="Detail level 0-100")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible output")
    parser.add_argument("--speed", type=float, default=settings.default_speed, help="Animation speed multiplier")
    parser.add_argument("--frames", type=Path, default=None, help="Directory for animation frame PNGs")
    parser.add_argument("--fps", type=float, default=10.0, help="Frame rate used with --frames")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, settings.polyart_log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    args = _parse_args(argv)
    if args.fps <= 0:
        logger.error("--fps must be > 0, got %s", args.fps)
        return 2

    try:
        image = load_image(args.input.read_bytes())
    except (OSError, ValueError) as e:
        logger.error("Cannot read %s: %s", args.input, e)
        return 2

    try:
        session = SessionManager().start(image, quality=args.quality, speed=args.speed, seed=args.seed)
    except ValueError as e:
        logger.error("%s", e)
        return 2

    if session.failed:
        logger.error(session.status)
        return 1

    if args.frames is not None and session.sequencer is not None:
        args.frames.mkdir(parents=True, exist_ok=True)
        count = 0
        for count, _ in enumerate(play(session, args.fps), start=1):
            (args.frames / f"frame_{count:05d}.png").write_bytes(session.surface.to_png())
        logger.info("Wrote %d frames to %s", count, args.frames)

    args.output.write_bytes(export_png(session))
    logger.info("Wrote %s (%dx%d, %d triangles)", args.output, session.width, session.height, len(session.triangles))
    return 0


if __name__ == "__main__":
    sys.exit(main())
