"""Configuration: Pydantic model for PTY shell sessions."""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ShellConfig(BaseModel):
    """Settings for a single PTY shell session.

    ``cols``/``rows`` are only the initial size; a running session tracks
    its own dimensions after ``notify_resize``.
    """

    cols: int = Field(default=80, gt=0, description="Initial terminal columns")
    rows: int = Field(default=24, gt=0, description="Initial terminal rows")
    shells: list[str] = Field(
        default_factory=lambda: ["/bin/bash", "/bin/sh"],
        description="Shell candidates, first executable one wins",
    )
    kill_grace: float = Field(
        default=0.2,
        ge=0,
        description="Seconds between SIGTERM and SIGKILL when stopping",
    )
    poll_interval: float = Field(
        default=0.15,
        gt=0,
        description="Reader poll timeout in seconds",
    )
    read_size: int = Field(default=4096, gt=0, description="Max bytes per read")
    forward_signals: bool = Field(
        default=True, description="Relay SIGINT/SIGTERM/SIGHUP to the child"
    )
    watch_resize: bool = Field(
        default=True, description="Track SIGWINCH on the controlling terminal"
    )
    env: dict[str, str] = Field(
        default_factory=dict, description="Extra environment for the shell"
    )

    @classmethod
    def load(cls, config_path: str | None = None) -> ShellConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            PTYSHELL_COLS           - Initial terminal columns
            PTYSHELL_ROWS           - Initial terminal rows
            PTYSHELL_SHELL          - Colon-separated shell candidates
            PTYSHELL_KILL_GRACE     - Seconds before SIGKILL on stop
            PTYSHELL_POLL_INTERVAL  - Reader poll timeout in seconds
        """
        load_dotenv()

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        env_cols = os.environ.get("PTYSHELL_COLS")
        if env_cols:
            config_data["cols"] = int(env_cols)

        env_rows = os.environ.get("PTYSHELL_ROWS")
        if env_rows:
            config_data["rows"] = int(env_rows)

        env_shell = os.environ.get("PTYSHELL_SHELL")
        if env_shell:
            config_data["shells"] = [s for s in env_shell.split(":") if s]

        env_grace = os.environ.get("PTYSHELL_KILL_GRACE")
        if env_grace:
            config_data["kill_grace"] = float(env_grace)

        env_poll = os.environ.get("PTYSHELL_POLL_INTERVAL")
        if env_poll:
            config_data["poll_interval"] = float(env_poll)

        return cls.model_validate(config_data)
