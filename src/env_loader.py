from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


def load_dotenv_if_present(path: str | None = None) -> None:
    """
    Load KEY=VALUE pairs from a local .env file into os.environ.

    - Default file is ".env" in the current working directory.
    - Blank lines and lines starting with "#" are skipped.
    - Surrounding single/double quotes around values are removed.
    - Variables already present in os.environ are left untouched, so
      values configured on the host (e.g. Lambda settings) always win.
    """
    env_path = Path(path or ".env")
    if not env_path.exists():
        return

    try:
        text = env_path.read_text(encoding="utf-8")
    except OSError:
        return

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):]
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'\"")
        if key and key not in os.environ:
            os.environ[key] = value


def env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    """
    Read an integer setting from the environment.

    Returns `default` when the variable is unset or empty and raises
    ValueError when it is set to something that is not an integer.
    """
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ValueError(
            f"Environment variable {name!r} must be an integer, got {value!r}.",
        ) from exc


__all__ = ["load_dotenv_if_present", "env_int"]
