"""
Local persistence.

JSON files holding the user's saved queries (newest first) and the
assistant conversation.
"""

import json
import logging
import time
from pathlib import Path
from typing import List

from pydantic import ValidationError

from ..core.types import ChatTurn, SavedQuery

logger = logging.getLogger(__name__)


class SavedQueryStore:
    """
    File-backed saved query list.

    Example:
        ```python
        store = SavedQueryStore(Path(".orgpilot/saved_queries.json"))
        store.add("Recent accounts", "SELECT Id FROM Account LIMIT 10")
        ```
    """

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> List[SavedQuery]:
        """Read saved queries; a missing or corrupt file yields an empty list."""
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
            return [SavedQuery.model_validate(item) for item in data]
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.error(f"Failed to parse saved queries in {self.path}: {e}")
            return []

    def save(self, queries: List[SavedQuery]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps([q.model_dump() for q in queries], indent=2))

    def add(self, name: str, query: str) -> SavedQuery:
        now = int(time.time() * 1000)
        saved = SavedQuery(id=str(now), name=name, query=query, saved_at=now)
        self.save([saved, *self.load()])
        return saved

    def delete(self, query_id: str) -> bool:
        queries = self.load()
        remaining = [q for q in queries if q.id != query_id]
        if len(remaining) == len(queries):
            return False
        self.save(remaining)
        return True


class ChatHistoryStore:
    """Assistant conversation, oldest turn first."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> List[ChatTurn]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
            return [ChatTurn.model_validate(item) for item in data]
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.error(f"Failed to parse chat history in {self.path}: {e}")
            return []

    def append(self, *turns: ChatTurn) -> List[ChatTurn]:
        history = [*self.load(), *turns]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps([t.model_dump(mode="json") for t in history], indent=2))
        return history

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
