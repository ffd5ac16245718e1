#!/usr/bin/env python3
"""Drive one emulated vehicle along a GPX track against a live collector.

Usage
-----
::

    export TRIPEMU_SERVER_ENDPOINT="http://localhost:8080"
    python scripts/run_emulator.py --vehicle 151 --track namsan_loop

Options::

    --vehicle ID        Vehicle identifier reported to the collector
    --track NAME        Track id, resolved as <assets>/<NAME>.gpx
    --endpoint URL      Collector base URL (overrides the environment)
    --assets DIR        Directory holding the GPX tracks
    --duration SECONDS  Stop the trip after this many seconds
    --verbose, -v       Enable debug logging

The trip runs until the track is exhausted, the duration elapses, or
Ctrl-C; an explicit stop sends the ignition-off message.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from tripemu import EmulatorConfig, EmulatorStatus, TripEmuError, TripEmulator  # noqa: E402

_POLL_INTERVAL_S = 0.5


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.endpoint:
        overrides["server_endpoint"] = args.endpoint
    if args.assets:
        overrides["assets_dir"] = args.assets
    config = EmulatorConfig.from_env(**overrides)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.duration if args.duration else None

    async with TripEmulator(config) as emulator:
        await emulator.start(args.vehicle, args.track)
        print(f"[{args.vehicle}] running on {emulator.current_route(args.vehicle)}")
        try:
            while emulator.status(args.vehicle) is EmulatorStatus.RUNNING:
                if deadline is not None and loop.time() >= deadline:
                    print(f"[{args.vehicle}] duration elapsed")
                    break
                await asyncio.sleep(_POLL_INTERVAL_S)
        finally:
            controller = emulator.registry.get(args.vehicle)
            if controller is not None and controller.is_engine_on:
                await emulator.stop(args.vehicle)
        print(f"[{args.vehicle}] final status: {emulator.status(args.vehicle)}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Emulate one vehicle trip along a GPX track.")
    parser.add_argument("--vehicle", required=True, help="Vehicle identifier")
    parser.add_argument("--track", required=True, help="Track id (GPX file name without extension)")
    parser.add_argument("--endpoint", help="Collector base URL")
    parser.add_argument("--assets", help="Directory holding GPX tracks")
    parser.add_argument("--duration", type=float, help="Stop after this many seconds")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130
    except TripEmuError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
