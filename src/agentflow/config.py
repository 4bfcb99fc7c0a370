"""Engine configuration.

Values come from defaults, an optional JSON file and ``AGENTFLOW_*``
environment variables, in increasing order of precedence.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from agentflow.domain.models import RetryPolicy

ENV_PREFIX = "AGENTFLOW_"
DEFAULT_ATTEMPT_TIMEOUT = 300.0


def _parse_timeout(raw: str) -> float | None:
    if raw.strip().lower() in ("", "none", "off", "0"):
        return None
    return float(raw)


def _parse_path(raw: str) -> Path | None:
    return Path(raw).expanduser() if raw.strip() else None


_PARSERS = {
    "max_attempts": int,
    "attempt_timeout": _parse_timeout,
    "initial_backoff": float,
    "backoff_multiplier": float,
    "max_backoff": float,
    "state_dir": _parse_path,
}


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for the Scheduler and its collaborators.

    This typed config ensures unknown fields are rejected at construction time.
    """

    max_attempts: int = 3
    attempt_timeout: float | None = DEFAULT_ATTEMPT_TIMEOUT
    initial_backoff: float = 0.0
    backoff_multiplier: float = 2.0
    max_backoff: float = 30.0
    state_dir: Path | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.attempt_timeout is not None and self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive or None")
        if self.initial_backoff < 0 or self.max_backoff < 0:
            raise ValueError("backoff delays must not be negative")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_backoff,
            multiplier=self.backoff_multiplier,
            max_delay=self.max_backoff,
        )

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, base: EngineConfig | None = None
    ) -> EngineConfig:
        """Overlay ``AGENTFLOW_*`` variables on ``base`` (default: defaults).

        Raises:
            ValueError: Naming the variable whose value cannot be parsed
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for name, parse in _PARSERS.items():
            key = ENV_PREFIX + name.upper()
            if key not in environ:
                continue
            try:
                overrides[name] = parse(environ[key])
            except ValueError as err:
                raise ValueError(f"Invalid value for {key}: {environ[key]!r}") from err
        return replace(base or cls(), **overrides)

    @classmethod
    def from_file(cls, path: Path) -> EngineConfig:
        """Load from a JSON object whose keys are field names.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: On unknown keys or invalid values
        """
        data = json.loads(path.read_text())
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")
        if data.get("state_dir") is not None:
            data["state_dir"] = Path(data["state_dir"]).expanduser()
        return cls(**data)

    @classmethod
    def load(
        cls, path: Path | None = None, environ: Mapping[str, str] | None = None
    ) -> EngineConfig:
        """Defaults, then ``path`` (if given), then the environment."""
        base = cls.from_file(path) if path is not None else cls()
        return cls.from_env(environ, base=base)
