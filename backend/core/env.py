from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator


def load_env(path: Path | None = None) -> None:
    """
    Populate os.environ from dotenv files.

    Without ``path`` the project ``.env`` is read, then ``.env.local`` on top
    of it. ``ENV_FILE`` points at a different base file (container secrets
    mounted elsewhere). Values exported by the shell are never replaced.
    """
    shell_keys = frozenset(os.environ)

    base = path or _default_env_path()
    _apply(base, shell_keys=shell_keys, override=False)
    if path is None:
        _apply(base.parent / ".env.local", shell_keys=shell_keys, override=True)


def parse_env_lines(lines: list[str]) -> Iterator[tuple[str, str]]:
    """Yield ``(key, value)`` for every assignment; comments and junk are skipped."""

    for raw_line in lines:
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key:
            yield key, _unquote(value.strip())


def _apply(env_path: Path, *, shell_keys: frozenset[str], override: bool) -> None:
    if not env_path.is_file():
        return
    lines = env_path.read_text(encoding="utf-8").splitlines()
    for key, value in parse_env_lines(lines):
        if key in shell_keys:
            continue
        if key in os.environ and not override:
            continue
        os.environ[key] = value


def _unquote(value: str) -> str:
    if len(value) > 1 and value[0] in "\"'" and value[-1] == value[0]:
        return value[1:-1]
    return value


def _default_env_path() -> Path:
    custom = os.getenv("ENV_FILE", "").strip()
    if custom:
        return Path(custom).expanduser()
    return Path(__file__).resolve().parents[2] / ".env"


__all__ = ["load_env", "parse_env_lines"]
