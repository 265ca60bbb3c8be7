"""
Unit tests for ClaudeClient with a mocked Anthropic client.
"""
from datetime import timezone, datetime
from types import SimpleNamespace
from unittest.mock import Mock

import httpx
import pytest
from anthropic import APIError

from tradecoach.config.settings import ClaudeConfig
from tradecoach.core.exceptions import InferenceFailed
from tradecoach.core.models import ScreenshotArtifact, Turn
from tradecoach.integrations.claude_client import ClaudeClient, parse_ticker
from tradecoach.prompts import ADVICE_SYSTEM_PROMPT, CLASSIFY_PROMPT


T0 = datetime(2025, 1, 2, 14, 30, tzinfo=timezone.utc)


def _response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


@pytest.fixture
def api():
    api = Mock()
    api.messages.create.return_value = _response("AAPL")
    return api


@pytest.fixture
def claude(api):
    return ClaudeClient(ClaudeConfig(api_key="test-key", model="claude-test"), client=api)


@pytest.fixture
def image(tmp_path):
    def _make(name="chart.png"):
        path = tmp_path / name
        path.write_bytes(b"\x89PNG fake")
        return ScreenshotArtifact(path=str(path), modified_at=T0)
    return _make


@pytest.mark.unit
class TestParseTicker:
    """Classification answers to tickers."""

    @pytest.mark.parametrize("answer,expected", [
        ("AAPL", "AAPL"),
        (" tsla\n", "TSLA"),
        ('"NVDA"', "NVDA"),
        ("BRK.B", "BRK.B"),
        ("UNKNOWN", None),
        ("unknown", None),
        ("", None),
        (None, None),
        ("I think AAPL", None),
        ("VERYLONGTICKER", None),
    ])
    def test_parse(self, answer, expected):
        assert parse_ticker(answer) == expected


@pytest.mark.unit
class TestClassify:
    def test_sends_image_and_prompt(self, claude, api, image):
        assert claude.classify(image()) == "AAPL"

        kwargs = api.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 10
        content = kwargs["messages"][0]["content"]
        assert content[0]["type"] == "image"
        assert content[0]["source"]["media_type"] == "image/png"
        assert content[1] == {"type": "text", "text": CLASSIFY_PROMPT}

    def test_unknown_answer(self, claude, api, image):
        api.messages.create.return_value = _response("UNKNOWN")
        assert claude.classify(image()) is None

    def test_api_error_becomes_inference_failed(self, claude, api, image):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        api.messages.create.side_effect = APIError("overloaded", request, body=None)
        with pytest.raises(InferenceFailed):
            claude.classify(image())

    def test_unsupported_image_type(self, claude, image):
        with pytest.raises(InferenceFailed):
            claude.classify(image("chart.bmp"))

    def test_missing_file(self, claude):
        artifact = ScreenshotArtifact(path="/nowhere/chart.png", modified_at=T0)
        with pytest.raises(InferenceFailed):
            claude.classify(artifact)

    def test_not_configured(self, image):
        client = ClaudeClient(ClaudeConfig(api_key=""))
        with pytest.raises(InferenceFailed):
            client.classify(image())


@pytest.mark.unit
class TestAdvise:
    def test_digest_uses_advice_prompt(self, claude, api):
        api.messages.create.return_value = _response("  HOLD above VWAP.  ")

        advice = claude.advise("TICKER: AAPL", [Turn.system("sys")])

        assert advice == "HOLD above VWAP."
        kwargs = api.messages.create.call_args.kwargs
        assert kwargs["system"] == ADVICE_SYSTEM_PROMPT
        assert "TICKER: AAPL" in kwargs["messages"][0]["content"]
        assert kwargs["temperature"] == 0.3

    def test_history_uses_system_turn(self, claude, api):
        api.messages.create.return_value = _response("YES")

        claude.advise(None, [Turn.system("coach prompt"), Turn.user("should I add?")])

        kwargs = api.messages.create.call_args.kwargs
        assert kwargs["system"] == "coach prompt"
        assert kwargs["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "should I add?"}]}
        ]
        assert kwargs["temperature"] == 0.7

    def test_blank_reply_is_none(self, claude, api):
        api.messages.create.return_value = _response("   ")
        assert claude.advise("digest", []) is None

    def test_nothing_to_send(self, claude, api):
        assert claude.advise(None, [Turn.system("sys"), Turn.assistant("hi")]) is None
        api.messages.create.assert_not_called()


@pytest.mark.unit
class TestBuildMessages:
    """Turn lists to alternating Anthropic messages."""

    def test_only_latest_screenshot_has_image(self, claude, image):
        first, second = image("one.png"), image("two.png")
        turns = [
            Turn.screenshot(first, "AAPL"),
            Turn.assistant("HOLD"),
            Turn.screenshot(second, "AAPL"),
        ]

        messages = claude.build_messages(turns)

        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert [b["type"] for b in messages[0]["content"]] == ["text"]
        assert [b["type"] for b in messages[2]["content"]] == ["text", "image"]

    def test_merges_and_trims(self, claude):
        turns = [
            Turn.assistant("leading"),
            Turn.user("one"),
            Turn.user("two"),
            Turn.assistant("reply"),
        ]

        messages = claude.build_messages(turns)

        assert messages == [{
            "role": "user",
            "content": [{"type": "text", "text": "one"}, {"type": "text", "text": "two"}],
        }]


@pytest.mark.unit
class TestSummarize:
    def test_sends_all_images(self, claude, api, image):
        api.messages.create.return_value = _response("Higher lows.")
        artifacts = [image(f"s{i}.png") for i in range(3)]

        assert claude.summarize("AAPL", artifacts) == "Higher lows."

        content = api.messages.create.call_args.kwargs["messages"][0]["content"]
        assert [b["type"] for b in content] == ["text", "image", "image", "image"]

    def test_blank_summary(self, claude, api, image):
        api.messages.create.return_value = _response("")
        artifacts = [image(f"s{i}.png") for i in range(3)]
        assert claude.summarize("AAPL", artifacts) == "No analysis generated"

    def test_window_size_enforced(self, claude, image):
        with pytest.raises(ValueError):
            claude.summarize("AAPL", [image("a.png"), image("b.png")])
