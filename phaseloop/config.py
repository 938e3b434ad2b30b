# phaseloop/config.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

TEN_BILLION = 10_000_000_000

ENV_WORKER_LIMIT = "PHASELOOP_WORKER_LIMIT"
ENV_LOG_LEVEL = "PHASELOOP_LOG_LEVEL"

IO_MODES = ("threaded", "inline")


@dataclass
class DemoConfig:
    """Settings shared by the two demonstrations."""

    workdir: Path = field(default_factory=Path.cwd)
    dummy_filename: str = "dummy.txt"
    dummy_content: str = "Hello from the event loop!"
    worker_limit: int = TEN_BILLION
    parent_limit: int = 1000
    io_mode: str = "threaded"
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        self.workdir = Path(self.workdir)
        if self.io_mode not in IO_MODES:
            raise ValueError(f"io_mode must be one of {IO_MODES}, got {self.io_mode!r}")
        if self.worker_limit < 0 or self.parent_limit < 0:
            raise ValueError("Loop limits must not be negative")

    @property
    def dummy_path(self) -> Path:
        return self.workdir / self.dummy_filename

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, **overrides) -> "DemoConfig":
        """
        Build a config from environment defaults, then explicit overrides.
        Overrides set to None are ignored.
        """
        env = os.environ if env is None else env
        values = {}
        if env.get(ENV_WORKER_LIMIT):
            values["worker_limit"] = int(env[ENV_WORKER_LIMIT])
        if env.get(ENV_LOG_LEVEL):
            values["log_level"] = env[ENV_LOG_LEVEL].upper()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
