#!/usr/bin/env python3
"""Replay recorded flights as synchronized traffic.

Loads one or more IGC files into a playlist, starts the primary flight as
the reference track and replays every other flight on the same clock.

Usage:
    python scripts/run_replay.py FILES... [OPTIONS]

Options:
    --primary NAME        Reference track (default: first by name)
    --speed FACTOR        Playback speed multiplier (default: from config)
    --fast-forward SECS   Skip ahead after start
    --duration SECS       Stop after this many wall-clock seconds
    --config PATH         YAML configuration file
    --serve               Serve the HTTP API instead of logging traffic
    --port PORT           HTTP port (default: from config)
    --json-logs           Emit JSON log lines

Examples:
    # Two gliders at 10x speed
    python scripts/run_replay.py flights/a.igc flights/b.igc --speed 10

    # Skip the first hour and expose the HTTP API
    python scripts/run_replay.py flights/*.igc --fast-forward 3600 --serve
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog
import uvicorn

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from flightlog.source import SourceUnreadableError
from replay.api import create_app
from replay.config import ReplayConfig, load_config
from replay.engine import ReplayEngine
from replay.errors import DuplicateNameError
from replay.logging_config import configure_logging
from replay.playlist import ReplayPlaylist
from replay.snapshot import ReplaySnapshot
from replay.timer import ReplayTimer

logger = structlog.get_logger(__name__)

REPORT_INTERVAL_S = 1.0


def build_parser() -> argparse.ArgumentParser:
    """Command-line parser."""
    parser = argparse.ArgumentParser(
        description="Multi-track flight replay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("files", nargs="+", help="IGC files to replay")
    parser.add_argument("--primary", help="Name of the reference track")
    parser.add_argument("--speed", type=float, help="Playback speed multiplier")
    parser.add_argument("--fast-forward", type=float, help="Seconds to skip after start")
    parser.add_argument("--duration", type=float, help="Wall-clock seconds to run")
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--serve", action="store_true", help="Serve the HTTP API")
    parser.add_argument("--port", type=int, help="HTTP port")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    return parser


def build_playlist(files: list[str]) -> ReplayPlaylist:
    """Queue every readable, uniquely named file."""
    playlist = ReplayPlaylist()
    for path in files:
        try:
            playlist.add(path)
        except (SourceUnreadableError, DuplicateNameError) as exc:
            logger.warning("playlist_entry_skipped", path=path, error=str(exc))
    return playlist


def report(snapshot: ReplaySnapshot) -> None:
    """Log one line per track."""
    for view in snapshot.tracks:
        if view.sample is None:
            continue
        logger.info(
            "traffic_update",
            track=view.name,
            reference=view.is_reference,
            virtual_time=snapshot.virtual_time,
            latitude=round(view.sample.location.latitude, 5),
            longitude=round(view.sample.location.longitude, 5),
            altitude=round(view.sample.altitude),
            exhausted=view.exhausted,
        )


async def run_headless(
    engine: ReplayEngine,
    config: ReplayConfig,
    duration_s: float | None,
) -> None:
    """Tick the engine and report traffic until stopped."""
    timer = ReplayTimer(engine, interval_s=config.engine.tick_interval_s)
    timer.start()
    elapsed = 0.0
    try:
        while duration_s is None or elapsed < duration_s:
            await asyncio.sleep(REPORT_INTERVAL_S)
            elapsed += REPORT_INTERVAL_S
            report(engine.snapshot())
            if all(view.exhausted for view in engine.snapshot().tracks):
                logger.info("replay_finished", virtual_time=engine.virtual_time())
                break
    finally:
        await timer.stop()
        engine.stop()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    configure_logging(config.logging.level, args.json_logs or config.logging.json_output)

    playlist = build_playlist(args.files)
    if not len(playlist):
        logger.error("no_readable_flights", files=args.files)
        return 1

    engine = ReplayEngine(playlist.source, config.engine)
    if args.speed is not None:
        result = engine.set_time_scale(args.speed)
        if not result:
            logger.error("invalid_speed", speed=args.speed, error=result.message)
            return 2

    try:
        results = playlist.start(engine, args.primary)
    except KeyError:
        logger.error("unknown_primary", primary=args.primary, entries=[e.name for e in playlist.entries])
        return 2
    if not engine.is_active:
        logger.error("replay_start_failed", results={k: v.to_dict() for k, v in results.items()})
        return 1

    if args.fast_forward:
        engine.fast_forward(args.fast_forward)

    if args.serve:
        app = create_app(engine, tick_interval_s=config.engine.tick_interval_s)
        uvicorn.run(app, host=config.server.host, port=args.port or config.server.port)
        return 0

    try:
        asyncio.run(run_headless(engine, config, args.duration))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
