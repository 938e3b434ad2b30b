# phaseloop/cli.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""Command line entry point for the demonstrations."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from phaseloop.config import IO_MODES, DemoConfig
from phaseloop.demos import handoff, ordering


def cmd_ordering(config: DemoConfig) -> int:
    ordering.run(config)
    return 0


def cmd_handoff(config: DemoConfig) -> int:
    handoff.run(config)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="phaseloop", description=__doc__)
    parser.add_argument("--log-level", help="Logging level for stderr diagnostics (default WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_order = sub.add_parser("ordering", help="Print the order in which each queue runs")
    p_order.add_argument("--workdir", type=Path, help="Directory receiving the dummy file")
    p_order.add_argument("--io-mode", choices=IO_MODES, help="How file reads complete")
    p_order.set_defaults(func=cmd_ordering)

    p_handoff = sub.add_parser("handoff", help="Hand a long count to a worker process")
    p_handoff.add_argument("--limit", type=int, dest="worker_limit", help="Worker loop bound")
    p_handoff.set_defaults(func=cmd_handoff)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    overrides = {
        key: value
        for key, value in vars(args).items()
        if key in ("workdir", "io_mode", "worker_limit", "log_level")
    }
    config = DemoConfig.from_env(**overrides)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    return args.func(config)


if __name__ == "__main__":
    raise SystemExit(main())
