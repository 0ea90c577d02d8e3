from __future__ import annotations

from collections import deque
import logging
from typing import Iterator

from ..types_.core import Role, Turn

logger = logging.getLogger(__name__)


class HistoryStore:
    """Bounded conversation transcript.

    Holds at most ``max_turns`` turns; the oldest are evicted first.
    """

    def __init__(self, max_turns: int = 20, recent_window: int = 10):
        if max_turns <= 0:
            raise ValueError("max_turns must be > 0")
        if recent_window <= 0:
            raise ValueError("recent_window must be > 0")

        self.max_turns = max_turns
        self.recent_window = recent_window
        self._turns: deque[Turn] = deque(maxlen=max_turns)

    def append(self, role: Role, content: str) -> Turn:
        turn = Turn(role=role, content=content)
        if len(self._turns) == self.max_turns:
            logger.debug(f"History full ({self.max_turns}), evicting oldest turn")
        self._turns.append(turn)
        return turn

    def remove(self, turn: Turn) -> bool:
        """Remove a specific turn (by identity). Returns False if it was already evicted."""
        for idx, existing in enumerate(self._turns):
            if existing is turn:
                del self._turns[idx]
                return True
        return False

    def recent(self, limit: int | None = None) -> list[Turn]:
        """Return the last ``limit`` non-system turns, oldest first."""
        limit = self.recent_window if limit is None else limit
        if limit <= 0:
            return []
        turns = [turn for turn in self._turns if turn.role != "system"]
        return turns[-limit:]

    def turns(self) -> list[Turn]:
        return list(self._turns)

    def clear(self) -> None:
        logger.debug("Clearing conversation history")
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))
