"""User-level identity persistence for MindSage clients."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def get_identity_store_path() -> Path:
    """Return the user-level identity file path.

    Uses a platform-appropriate location and supports an override via
    ``MINDSAGE_IDENTITY_PATH`` for tests.
    """
    override = os.environ.get("MINDSAGE_IDENTITY_PATH", "").strip()
    if override:
        return Path(override)

    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))
        return base / "mindsage" / "identity.json"

    return Path.home() / ".config" / "mindsage" / "identity.json"


def load_stored_identity(path: Path | None = None) -> dict | None:
    """Return the persisted identity payload, or ``None`` when absent/unreadable."""
    path = path or get_identity_store_path()
    if not path.exists():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable identity file %s: %s", path, e)
        return None

    return data if isinstance(data, dict) else None


def save_stored_identity(payload: dict, path: Path | None = None) -> None:
    path = path or get_identity_store_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    if os.name != "nt":
        path.chmod(0o600)


def clear_stored_identity(path: Path | None = None) -> None:
    path = path or get_identity_store_path()
    path.unlink(missing_ok=True)
