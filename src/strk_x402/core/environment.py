"""
Utilities for building the environment used by the x402 client.

The helpers are intentionally lightweight: they understand .env files, allow
callers to layer overrides, and ultimately return a plain mapping that can be
fed into :class:`strk_x402.core.config.ClientConfig`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

__all__ = [
    "ClientEnvironment",
    "GLOBAL_ENV_FILE",
    "build_environment",
    "default_env_files",
]

GLOBAL_ENV_FILE = Path.home() / ".strk-x402" / ".env"


def _parse_env_file(path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    try:
        data = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return values

    for raw_line in data.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export ") :]
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        values[key.strip()] = value
    return values


def default_env_files(explicit: Optional[str] = None) -> Sequence[Path]:
    """
    Candidate env files in lookup order.

    An explicit path wins outright; otherwise ``./.env`` and then the
    per-user file under ``~/.strk-x402`` are tried.
    """
    if explicit is not None:
        return (Path(explicit),)
    return (Path.cwd() / ".env", GLOBAL_ENV_FILE)


@dataclass(frozen=True)
class ClientEnvironment:
    """
    A resolved set of environment variables used to configure the client.
    """

    variables: Mapping[str, str]
    source: Optional[Path] = None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.variables.get(key, default)


def build_environment(
    *,
    env_file: Optional[str] = None,
    search: bool = True,
    base: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> ClientEnvironment:
    """
    Assemble a :class:`ClientEnvironment` from multiple sources.

    ``base`` defaults to :data:`os.environ`. The first existing file from
    :func:`default_env_files` fills in missing keys; pass ``search=False`` to
    skip file loading entirely. ``overrides`` always win.
    """
    merged: Dict[str, str] = dict(os.environ if base is None else base)

    source: Optional[Path] = None
    if search:
        for candidate in default_env_files(env_file):
            if candidate.is_file():
                source = candidate
                for key, value in _parse_env_file(candidate).items():
                    merged.setdefault(key, value)
                break

    if overrides:
        merged.update(overrides)

    return ClientEnvironment(variables=merged, source=source)
