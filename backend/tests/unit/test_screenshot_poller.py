"""
Unit tests for ScreenshotIngestionPoller.

Ticks are driven directly through run_once(); the thread is never started.
"""
from datetime import timedelta

import pytest

from tradecoach.core.enums import EventKind, PollerState, Role
from tradecoach.core.exceptions import CaptureError, InferenceFailed
from tradecoach.threads.screenshot_poller import ScreenshotIngestionPoller
from tests.fixtures.coach_fakes import T0


@pytest.fixture
def poller(coach_state, sessions, capture, classifier, advisor, sink, coach_config, clock):
    return ScreenshotIngestionPoller(
        coach_state, sessions, capture, classifier, advisor, sink, coach_config, clock=clock
    )


def _arm(poller, clock, coach_config):
    clock.advance(coach_config.warmup_seconds)
    poller.run_once()
    assert poller.poller_state == PollerState.ARMED


@pytest.mark.unit
class TestWarmUp:
    """Captures present before the warm-up ends are never processed."""

    def test_cold_start_absorbs_existing_capture(self, poller, capture, classifier, clock, coach_config):
        capture.put("/captures/old.png", T0 - timedelta(minutes=1))

        poller.run_once()
        assert poller.poller_state == PollerState.COLD_START

        _arm(poller, clock, coach_config)
        poller.run_once()

        classifier.classify.assert_not_called()

    def test_capture_written_during_warm_up_is_absorbed(self, poller, capture, classifier, clock, coach_config):
        clock.advance(5)
        capture.put("/captures/early.png", clock.now())
        poller.run_once()

        _arm(poller, clock, coach_config)
        classifier.classify.assert_not_called()

    def test_stale_capture_after_warm_up_is_ignored(self, poller, capture, classifier, clock, coach_config):
        _arm(poller, clock, coach_config)
        capture.put("/captures/old.png", T0 - timedelta(minutes=5))

        poller.run_once()

        classifier.classify.assert_not_called()


@pytest.mark.unit
class TestIngestion:
    """Armed poller behavior."""

    def test_ticker_sequence_creates_and_switches_sessions(
        self, poller, capture, classifier, advisor, sink, store, coach_state, clock, coach_config
    ):
        """A, A, B, A gives three sessions, one active, with handoffs on switches."""
        _arm(poller, clock, coach_config)

        for index, ticker in enumerate(["AAPL", "AAPL", "TSLA", "AAPL"], start=1):
            clock.advance(5)
            capture.put(f"/captures/shot{index}.png", clock.now())
            classifier.classify.return_value = ticker
            poller.run_once()

        assert len(store.sessions) == 3
        assert store.active_count() == 1
        assert coach_state.active_session.ticker == "AAPL"
        assert coach_state.active_session.screenshot_count == 1

        transitions = sink.of_kind(EventKind.SESSION_TRANSITION)
        assert len(transitions) == 3
        assert "- AAPL:" in transitions[1].message
        assert "2 screenshots" in transitions[1].message
        assert "- TSLA:" in transitions[2].message

        assert advisor.advise.call_count == 4
        assert len(sink.of_kind(EventKind.ADVICE_EMITTED)) == 4

    def test_same_capture_processed_once(self, poller, capture, classifier, clock, coach_config):
        _arm(poller, clock, coach_config)
        capture.put("/captures/shot.png", clock.now() + timedelta(seconds=1))
        classifier.classify.return_value = "AAPL"

        poller.run_once()
        poller.run_once()
        poller.run_once()

        assert classifier.classify.call_count == 1

    def test_reaction_appends_screenshot_and_reply(
        self, poller, capture, classifier, advisor, coach_state, clock, coach_config
    ):
        _arm(poller, clock, coach_config)
        capture.put("/captures/shot.png", clock.now() + timedelta(seconds=1))
        classifier.classify.return_value = "AAPL"

        poller.run_once()

        turns = coach_state.history.snapshot()
        assert [t.role for t in turns] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
        assert turns[1].image_path == "/captures/shot.png"
        assert turns[1].content == "New screenshot of AAPL: shot.png"
        assert turns[2].content == "HOLD. Wait for the break of the high."

        digest, history = advisor.advise.call_args.args
        assert digest is None
        assert history[-1] == turns[1]

    def test_no_confident_ticker_changes_nothing(
        self, poller, capture, classifier, advisor, coach_state, clock, coach_config
    ):
        _arm(poller, clock, coach_config)
        capture.put("/captures/shot.png", clock.now() + timedelta(seconds=1))
        classifier.classify.return_value = None

        poller.run_once()
        poller.run_once()

        assert coach_state.active_session is None
        assert classifier.classify.call_count == 1
        advisor.advise.assert_not_called()

    def test_classifier_failure_retries_next_tick(
        self, poller, capture, classifier, coach_state, clock, coach_config
    ):
        _arm(poller, clock, coach_config)
        capture.put("/captures/shot.png", clock.now() + timedelta(seconds=1))
        classifier.classify.side_effect = [InferenceFailed("timeout"), "AAPL"]

        assert poller.run_once() is True
        assert coach_state.active_session is None
        assert poller.run_once() is True

        assert classifier.classify.call_count == 2
        assert coach_state.active_session.ticker == "AAPL"

    def test_classifier_failure_reported_once(
        self, poller, capture, classifier, sink, clock, coach_config
    ):
        _arm(poller, clock, coach_config)
        capture.put("/captures/shot.png", clock.now() + timedelta(seconds=1))
        classifier.classify.side_effect = InferenceFailed("overloaded")

        for _ in range(3):
            assert poller.run_once() is True

        assert classifier.classify.call_count == 3
        events = sink.of_kind(EventKind.INFERENCE_ERROR)
        assert len(events) == 1
        assert events[0].ticker is None

    def test_no_user_skips_ingestion(self, poller, capture, classifier, coach_state, clock, coach_config):
        coach_state.user_id = None
        _arm(poller, clock, coach_config)
        capture.put("/captures/shot.png", clock.now() + timedelta(seconds=1))

        poller.run_once()

        classifier.classify.assert_not_called()

    def test_mark_seen_skips_capture(self, poller, capture, classifier, clock, coach_config):
        _arm(poller, clock, coach_config)
        artifact = capture.put("/captures/manual.png", clock.now() + timedelta(seconds=1))

        poller.mark_seen(artifact)
        poller.run_once()

        classifier.classify.assert_not_called()


@pytest.mark.unit
class TestErrorReporting:
    """Capture and inference errors surface once, then stay quiet."""

    def test_capture_error_reported_once(self, poller, capture, sink, clock, coach_config):
        _arm(poller, clock, coach_config)
        capture.error = CaptureError("permission denied")

        poller.run_once()
        poller.run_once()
        poller.run_once()

        errors = sink.of_kind(EventKind.CAPTURE_ERROR)
        assert len(errors) == 1
        assert "permission denied" in errors[0].message

    def test_capture_error_reported_again_after_recovery(self, poller, capture, sink, clock, coach_config):
        _arm(poller, clock, coach_config)
        capture.error = CaptureError("gone")
        poller.run_once()
        capture.error = None
        poller.run_once()
        capture.error = CaptureError("gone again")
        poller.run_once()

        assert len(sink.of_kind(EventKind.CAPTURE_ERROR)) == 2

    def test_reaction_failure_keeps_session(
        self, poller, capture, classifier, advisor, sink, coach_state, clock, coach_config
    ):
        _arm(poller, clock, coach_config)
        capture.put("/captures/shot.png", clock.now() + timedelta(seconds=1))
        classifier.classify.return_value = "AAPL"
        advisor.advise.side_effect = InferenceFailed("overloaded")

        poller.run_once()

        assert coach_state.active_session.ticker == "AAPL"
        assert coach_state.active_session.screenshot_count == 1
        assert len(coach_state.history) == 1
        assert len(sink.of_kind(EventKind.INFERENCE_ERROR)) == 1
