"""
Anthropic Claude API Client Integration

Implements the classifier, advisor and batch summarizer on one client.
"""
import base64
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from anthropic import Anthropic, APIError

from tradecoach.config import settings
from tradecoach.config.settings import ClaudeConfig
from tradecoach.core.enums import Role
from tradecoach.core.exceptions import InferenceFailed
from tradecoach.core.interfaces import Advisor, BatchSummarizer, Classifier
from tradecoach.core.models import ScreenshotArtifact, Turn
from tradecoach.prompts import (
    ADVICE_SYSTEM_PROMPT,
    ADVICE_USER_TEMPLATE,
    BATCH_SYSTEM_PROMPT,
    BATCH_USER_TEMPLATE,
    CLASSIFY_PROMPT,
    COACH_SYSTEM_PROMPT,
    SCREENSHOT_REACTION_PROMPT,
)
from tradecoach.logger import logger


MEDIA_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

MAX_TICKER_LENGTH = 10
BATCH_MIN_ARTIFACTS = 3
BATCH_MAX_ARTIFACTS = 5


def parse_ticker(answer: Optional[str]) -> Optional[str]:
    """
    Turn a classification answer into a ticker.

    Args:
        answer: Raw model output

    Returns:
        Upper-case ticker, or None for empty, UNKNOWN, over-long or
        multi-word answers
    """
    ticker = (answer or "").strip().strip('"\'').upper()
    if not ticker or ticker == "UNKNOWN" or len(ticker) > MAX_TICKER_LENGTH or " " in ticker:
        return None
    return ticker


class ClaudeClient(Classifier, Advisor, BatchSummarizer):
    """
    Client for interacting with Anthropic Claude API

    Screenshots are sent as base64 image blocks. When replaying the
    conversation, only the most recent screenshot carries its image; earlier
    ones are sent as text.
    """

    def __init__(self, config: Optional[ClaudeConfig] = None, client: Optional[Anthropic] = None):
        self.config = config or settings.CLAUDE
        self.model = self.config.model

        if client is not None:
            self.client = client
        elif not self.config.api_key:
            logger.warning("Anthropic API key not configured")
            self.client = None
        else:
            self.client = Anthropic(api_key=self.config.api_key)
            logger.info(f"Claude client initialized with model: {self.model}")

    # =========================================================================
    # Classifier
    # =========================================================================

    def classify(self, artifact: ScreenshotArtifact) -> Optional[str]:
        content = [
            self._image_block(artifact.path),
            {"type": "text", "text": CLASSIFY_PROMPT},
        ]
        answer = self._create(
            "classify",
            messages=[{"role": "user", "content": content}],
            max_tokens=self.config.classify_max_tokens,
            temperature=self.config.classify_temperature,
        )
        ticker = parse_ticker(answer)
        logger.info(f"[CLAUDE] Classified {artifact.filename}: {answer!r} -> {ticker}")
        return ticker

    # =========================================================================
    # Advisor
    # =========================================================================

    def advise(self, digest: Optional[str], history: Sequence[Turn]) -> Optional[str]:
        if digest is not None:
            text = self._create(
                "advise",
                system=ADVICE_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": ADVICE_USER_TEMPLATE.format(digest=digest)}],
                max_tokens=self.config.advice_max_tokens,
                temperature=self.config.advice_temperature,
            )
        else:
            system = COACH_SYSTEM_PROMPT
            turns = list(history)
            if turns and turns[0].role == Role.SYSTEM:
                system = turns.pop(0).content
            messages = self.build_messages(turns)
            if not messages:
                return None
            text = self._create(
                "react",
                system=system,
                messages=messages,
                max_tokens=self.config.advice_max_tokens,
                temperature=self.config.reaction_temperature,
            )
        return text.strip() or None

    def build_messages(self, turns: Sequence[Turn]) -> List[Dict[str, Any]]:
        """
        Convert turns into Anthropic messages.

        Consecutive turns with the same role are merged and leading assistant
        turns are dropped, since the API expects alternating roles starting
        with the user.
        """
        last_image_index = max(
            (i for i, t in enumerate(turns) if t.image_path), default=None
        )
        messages: List[Dict[str, Any]] = []
        for index, turn in enumerate(turns):
            if turn.role == Role.SYSTEM:
                continue
            role = "user" if turn.role == Role.USER else "assistant"
            if not messages and role != "user":
                continue

            if turn.image_path and index == last_image_index:
                blocks = [
                    {"type": "text", "text": f"{SCREENSHOT_REACTION_PROMPT}\n\n{turn.content}"},
                    self._image_block(turn.image_path),
                ]
            else:
                blocks = [{"type": "text", "text": turn.content}]

            if messages and messages[-1]["role"] == role:
                messages[-1]["content"].extend(blocks)
            else:
                messages.append({"role": role, "content": blocks})

        # Must end on a user turn
        while messages and messages[-1]["role"] != "user":
            messages.pop()
        return messages

    # =========================================================================
    # Batch summarizer
    # =========================================================================

    def summarize(self, ticker: str, artifacts: Sequence[ScreenshotArtifact]) -> str:
        if not BATCH_MIN_ARTIFACTS <= len(artifacts) <= BATCH_MAX_ARTIFACTS:
            raise ValueError(
                f"Batch analysis needs {BATCH_MIN_ARTIFACTS}-{BATCH_MAX_ARTIFACTS} screenshots, "
                f"got {len(artifacts)}"
            )

        content: List[Dict[str, Any]] = [{
            "type": "text",
            "text": BATCH_USER_TEMPLATE.format(count=len(artifacts), ticker=ticker),
        }]
        content.extend(self._image_block(a.path) for a in artifacts)

        summary = self._create(
            "summarize",
            system=BATCH_SYSTEM_PROMPT.format(ticker=ticker),
            messages=[{"role": "user", "content": content}],
            max_tokens=self.config.batch_max_tokens,
            temperature=self.config.batch_temperature,
        )
        return summary.strip() or "No analysis generated"

    # =========================================================================
    # Helpers
    # =========================================================================

    def _create(self, operation: str, **kwargs) -> str:
        if not self.client:
            raise InferenceFailed("Claude API not configured. Set CLAUDE__API_KEY in .env")
        try:
            response = self.client.messages.create(model=self.model, **kwargs)
        except APIError as e:
            logger.error(f"[CLAUDE] {operation} failed: {e}")
            raise InferenceFailed(f"Claude {operation} failed: {e}") from e

        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    @staticmethod
    def _image_block(path: str) -> Dict[str, Any]:
        suffix = Path(path).suffix.lower()
        media_type = MEDIA_TYPES.get(suffix)
        if media_type is None:
            raise InferenceFailed(f"Unsupported image type: {suffix}")
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise InferenceFailed(f"Could not read screenshot {path}: {e}") from e
        return {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": media_type,
                "data": base64.b64encode(data).decode("ascii"),
            },
        }
