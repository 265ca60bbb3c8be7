"""
Decides whether a freshly generated advice message is worth showing.
"""
from dataclasses import dataclass
from typing import Optional, Sequence


UNIMPORTANT_PHRASES = (
    "nothing happening",
    "no significant changes",
    "no clear signal",
    "no actionable information",
    "continue monitoring",
    "no changes detected",
    "no new information",
    "same as before",
    "no update needed",
)

# First match wins, so order matters: "no" is a substring of many words.
DECISION_WORDS = ("yes", "no", "hold", "exit")


@dataclass
class MessageDedupState:
    """Last emitted advice and the streak of discarded candidates."""
    last_emitted_message: Optional[str] = None
    consecutive_no_change_count: int = 0

    def record_discard(self) -> int:
        self.consecutive_no_change_count += 1
        return self.consecutive_no_change_count

    def record_emitted(self, message: str) -> None:
        self.last_emitted_message = message
        self.consecutive_no_change_count = 0

    def reset_streak(self) -> None:
        self.consecutive_no_change_count = 0


class MessageDedupFilter:
    """Discards "nothing new" messages and repeats of the last emitted one.

    Two messages are similar when they match exactly (ignoring case), or when
    both first mention the same decision word and their word overlap exceeds
    ``similarity_threshold``. Messages with different or missing decision
    words are never similar.
    """

    def __init__(
        self,
        similarity_threshold: float = 0.7,
        unimportant_phrases: Sequence[str] = UNIMPORTANT_PHRASES,
    ):
        self.similarity_threshold = similarity_threshold
        self.unimportant_phrases = tuple(p.lower() for p in unimportant_phrases)

    def is_unimportant(self, message: str) -> bool:
        lowered = message.lower()
        return any(phrase in lowered for phrase in self.unimportant_phrases)

    def is_similar(self, message: Optional[str], previous: Optional[str]) -> bool:
        if not message or not previous:
            return False

        first = message.lower()
        second = previous.lower()
        if first == second:
            return True

        decision = self._decision_word(first)
        if decision is None or decision != self._decision_word(second):
            return False
        return self.word_overlap(first, second) > self.similarity_threshold

    def should_discard(self, message: str, state: MessageDedupState) -> bool:
        return self.is_unimportant(message) or self.is_similar(
            message, state.last_emitted_message
        )

    @staticmethod
    def word_overlap(first: str, second: str) -> float:
        words_first = first.split()
        words_second = second.split()
        total = max(len(words_first), len(words_second))
        if total == 0:
            return 0.0
        second_set = set(words_second)
        common = sum(1 for word in words_first if word in second_set)
        return common / total

    @staticmethod
    def _decision_word(message: str) -> Optional[str]:
        for word in DECISION_WORDS:
            if word in message:
                return word
        return None
