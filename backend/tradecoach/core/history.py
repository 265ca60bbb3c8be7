"""
Bounded conversation log.
"""
from typing import List

from tradecoach.core.enums import Role
from tradecoach.core.models import Turn


DEFAULT_MAX_TURNS = 20


class ConversationHistoryStore:
    """Ordered dialogue turns behind one leading system turn.

    At most ``max_turns`` turns follow the system turn; the oldest are evicted
    first. Not thread-safe on its own: callers hold the coach state lock.
    """

    def __init__(self, system_prompt: str, max_turns: int = DEFAULT_MAX_TURNS):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self._system = Turn.system(system_prompt)
        self._max_turns = max_turns
        self._turns: List[Turn] = [self._system]

    @property
    def max_length(self) -> int:
        return self._max_turns + 1

    def append(self, turn: Turn) -> None:
        if turn.role == Role.SYSTEM:
            raise ValueError("system turn is fixed")
        self._turns.append(turn)
        if len(self._turns) > self.max_length:
            self._turns = [self._system] + self._turns[-self._max_turns:]

    def snapshot(self) -> List[Turn]:
        """Copy of the history, system turn first."""
        return list(self._turns)

    def recent(self, count: int) -> List[Turn]:
        """Last ``count`` non-system turns, oldest first."""
        if count <= 0:
            return []
        return self._turns[1:][-count:]

    def reset(self) -> None:
        self._turns = [self._system]

    def __len__(self) -> int:
        return len(self._turns)
