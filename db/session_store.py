"""
Durable session memory for the discovery screen.

Holds a single scalar, the last accepted page number, in a small JSON file so
a returning user resumes on the page they left.
"""

import json
import logging
import os
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_DEFAULT_STATE_PATH = Path.home() / ".movie_discovery" / "session.json"
_REMEMBERED_PAGE_FIELD = "remembered_page"


class SessionStore(Protocol):
    def read_remembered_page(self) -> int | None: ...

    def write_remembered_page(self, page: int) -> None: ...


def default_state_path() -> Path:
    return Path(os.getenv("SESSION_STATE_PATH", str(_DEFAULT_STATE_PATH)))


class JsonFileSessionStore:
    """SessionStore persisted as a one-key JSON object on disk."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_state_path()

    def read_remembered_page(self) -> int | None:
        """
        Return the remembered page, or None if nothing usable is stored.

        A missing file is the normal first-run case. An unreadable or
        non-positive value is logged and treated the same way.
        """
        if not self.path.exists():
            return None

        try:
            state = json.loads(self.path.read_text(encoding="utf-8"))
            page = int(state[_REMEMBERED_PAGE_FIELD])
        except (OSError, ValueError, TypeError, KeyError) as exc:
            logger.warning("Ignoring unreadable session state at %s: %s", self.path, exc)
            return None

        if page < 1:
            logger.warning("Ignoring non-positive remembered page %d at %s", page, self.path)
            return None
        return page

    def write_remembered_page(self, page: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({_REMEMBERED_PAGE_FIELD: page}), encoding="utf-8")
