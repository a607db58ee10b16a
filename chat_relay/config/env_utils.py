"""Small .env helper used by the chat window to remember the backend URL."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import set_key


ENV_FILE = Path.cwd() / ".env"


def save_backend_url(url: str, path: Optional[Path] = None) -> Path:
    """Persist BACKEND_URL so the next window starts against the same relay."""

    env_path = path or ENV_FILE
    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.touch(exist_ok=True)
    set_key(str(env_path), "BACKEND_URL", url.rstrip("/"), quote_mode="never")
    return env_path
