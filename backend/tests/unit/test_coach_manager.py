"""
Unit tests for CoachManager (command surface).

Threads are never started; loop ticks are driven through run_once().
"""
import threading
from datetime import timedelta

import pytest

from tradecoach.core.enums import EventKind, Role
from tradecoach.core.exceptions import CaptureError, InferenceFailed
from tradecoach.managers.coach_manager import CoachManager


@pytest.fixture
def manager(classifier, advisor, summarizer, store, market, capture, sender, sink, coach_config, clock):
    return CoachManager(
        classifier=classifier,
        advisor=advisor,
        summarizer=summarizer,
        store=store,
        market=market,
        capture=capture,
        sender=sender,
        sink=sink,
        config=coach_config,
        clock=clock,
        start_threads=False,
    )


@pytest.fixture
def detected(manager, capture, classifier, clock):
    """Manager with user-1 active and an AAPL session from manual detection."""
    manager.set_active_user("user-1")
    capture.put("/captures/aapl.png", clock.now())
    classifier.classify.return_value = "AAPL"
    result = manager.detect_ticker_from_latest_artifact()
    assert result.success
    return manager


@pytest.mark.unit
class TestActiveUser:
    """Setting the user and restoring their stored session."""

    def test_requires_user_id(self, manager):
        result = manager.set_active_user("")
        assert result.success is False

    def test_sets_user_without_stored_session(self, manager):
        result = manager.set_active_user("user-1")
        assert result.success is True
        assert result.ticker is None
        assert manager.state.user_id == "user-1"

    def test_restores_stored_session(self, manager, store):
        store.create("user-1", "AMD")

        result = manager.set_active_user("user-1")

        assert result.ticker == "AMD"
        assert result.session_id == "db-1"
        assert manager.state.active_session.ticker == "AMD"

    def test_store_failure_on_lookup(self, manager, store):
        store.fail = True
        result = manager.set_active_user("user-1")
        assert result.success is True
        assert manager.state.active_session is None

    def test_switching_user_drops_session_and_history(self, detected, advisor):
        detected.send_user_message("should I add?")
        session = detected.state.active_session

        detected.set_active_user("user-2")

        assert session.is_active is False
        assert detected.state.active_session is None
        assert len(detected.state.history) == 1
        assert detected.dialogue_loop is None


@pytest.mark.unit
class TestManualDetection:
    """detect_ticker_from_latest_artifact."""

    def test_creates_session(self, detected, sender, store):
        session = detected.state.active_session
        assert session.ticker == "AAPL"
        assert session.manual is True
        assert session.screenshot_count == 1
        assert store.sessions["db-1"]["manual"] is True
        sender.send.assert_called_once()

    def test_returns_identifiers(self, manager, capture, classifier, clock):
        manager.set_active_user("user-1")
        capture.put("/captures/aapl.png", clock.now())
        classifier.classify.return_value = "AAPL"

        result = manager.detect_ticker_from_latest_artifact()

        assert result.to_dict() == {
            "success": True,
            "ticker": "AAPL",
            "sessionId": "db-1",
            "screenshotId": "shot-1",
        }

    def test_does_not_touch_history(self, detected, advisor):
        assert len(detected.state.history) == 1
        advisor.advise.assert_not_called()

    def test_same_ticker_keeps_session(self, detected, sender, capture, clock):
        first = detected.state.active_session
        capture.put("/captures/aapl2.png", clock.advance(5))

        result = detected.detect_ticker_from_latest_artifact()

        assert result.session_id == first.id
        assert detected.state.active_session is first
        assert first.screenshot_count == 2
        sender.send.assert_called_once()

    def test_switch_has_no_handoff(self, detected, capture, classifier, clock, sink):
        capture.put("/captures/tsla.png", clock.advance(5))
        classifier.classify.return_value = "TSLA"

        detected.detect_ticker_from_latest_artifact()

        message = sink.of_kind(EventKind.SESSION_TRANSITION)[-1].message
        assert message == "New ticker detected: TSLA. Watching it now."

    def test_poller_skips_manually_detected_capture(self, detected, classifier, clock, coach_config):
        clock.advance(coach_config.warmup_seconds)
        detected.poller.run_once()
        detected.poller.run_once()
        assert classifier.classify.call_count == 1

    def test_repeated_detection_counts_capture_once(self, detected, store):
        session = detected.state.active_session

        detected.detect_ticker_from_latest_artifact()
        result = detected.detect_ticker_from_latest_artifact()

        assert result.success is True
        assert result.session_id == session.id
        assert session.screenshot_count == 1
        assert len(session.artifacts) == 1
        assert len(store.screenshots) == 1

    def test_detection_after_poller_counts_capture_once(self, manager, capture, classifier, clock, coach_config, store):
        manager.set_active_user("user-1")
        classifier.classify.return_value = "AAPL"
        clock.advance(coach_config.warmup_seconds)
        capture.put("/captures/aapl.png", clock.now())
        manager.poller.run_once()
        session = manager.state.active_session
        assert session.screenshot_count == 1

        result = manager.detect_ticker_from_latest_artifact()

        assert result.session_id == session.id
        assert session.screenshot_count == 1
        assert [a.filename for a in session.artifacts] == ["aapl.png"]
        assert len(store.screenshots) == 1

    def test_requires_user(self, manager):
        result = manager.detect_ticker_from_latest_artifact()
        assert result.success is False
        assert result.error == "No active user set"

    def test_no_screenshot(self, manager):
        manager.set_active_user("user-1")
        result = manager.detect_ticker_from_latest_artifact()
        assert result.error == "No screenshots found"

    def test_capture_error(self, manager, capture):
        manager.set_active_user("user-1")
        capture.error = CaptureError("folder unreadable")
        result = manager.detect_ticker_from_latest_artifact()
        assert result.success is False
        assert "folder unreadable" in result.error

    def test_no_ticker_detected(self, manager, capture, classifier, clock):
        manager.set_active_user("user-1")
        capture.put("/captures/desktop.png", clock.now())
        classifier.classify.return_value = None

        result = manager.detect_ticker_from_latest_artifact()

        assert result.success is False
        assert manager.state.active_session is None

    def test_classifier_failure(self, manager, capture, classifier, clock):
        manager.set_active_user("user-1")
        capture.put("/captures/aapl.png", clock.now())
        classifier.classify.side_effect = InferenceFailed("overloaded")

        result = manager.detect_ticker_from_latest_artifact()

        assert result.success is False
        assert "overloaded" in result.error


@pytest.mark.unit
class TestConcurrentDetection:
    """Poller and manual detection racing on the same fresh ticker."""

    def test_one_session_and_one_notification(self, manager, capture, classifier, clock, coach_config, store, sender):
        manager.set_active_user("user-1")
        classifier.classify.return_value = "NVDA"
        clock.advance(coach_config.warmup_seconds)
        capture.put("/captures/nvda.png", clock.now())
        barrier = threading.Barrier(2)
        errors = []

        def run(action):
            barrier.wait()
            try:
                action()
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=run, args=(manager.poller.run_once,)),
            threading.Thread(target=run, args=(manager.detect_ticker_from_latest_artifact,)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert errors == []
        assert len(store.sessions) == 1
        assert store.active_count() == 1
        sender.send.assert_called_once()
        session = manager.state.active_session
        assert session.ticker == "NVDA"
        assert session.screenshot_count == 1


@pytest.mark.unit
class TestLoops:
    """Loops follow the session lifecycle and report their status."""

    def test_loops_start_with_session(self, detected):
        session = detected.state.active_session
        assert detected.dialogue_loop.session is session
        assert detected.batch_scheduler.session is session

    def test_switch_replaces_loops(self, detected, capture, classifier, clock):
        old_loop = detected.dialogue_loop
        old_scheduler = detected.batch_scheduler
        capture.put("/captures/tsla.png", clock.advance(5))
        classifier.classify.return_value = "TSLA"

        detected.detect_ticker_from_latest_artifact()

        assert old_loop.cancelled is True
        assert old_scheduler.cancelled is True
        assert detected.dialogue_loop.session.ticker == "TSLA"
        assert detected.batch_scheduler.session.ticker == "TSLA"

    def test_end_session_stops_loops(self, detected, store):
        result = detected.end_active_session()

        assert result.success is True
        assert result.ticker == "AAPL"
        assert detected.dialogue_loop is None
        assert detected.batch_scheduler is None
        assert store.active_count() == 0

    def test_end_without_session(self, manager):
        manager.set_active_user("user-1")
        assert manager.end_active_session().success is False

    def test_start_for_inactive_session_fails(self, detected):
        result = detected.start_dialogue_loop("not-a-session")
        assert result.success is False

    def test_start_is_idempotent(self, detected):
        loop = detected.dialogue_loop
        result = detected.start_dialogue_loop(loop.session.id)
        assert result.success is True
        assert detected.dialogue_loop is loop

    def test_loop_status(self, detected, market):
        market.set("AAPL", 100.0, 1_000_000.0)
        detected.dialogue_loop.run_once()

        status = detected.get_loop_status()

        assert status == {
            "running": True,
            "lastMessage": "HOLD. Wait for the break of the high.",
            "softPaused": False,
            "sessionId": "db-1",
        }

    def test_loop_status_when_stopped(self, detected):
        detected.stop_dialogue_loop()
        assert detected.get_loop_status()["running"] is False

    def test_batch_status(self, detected, capture, clock):
        for i in range(2):
            capture.put(f"/captures/aapl{i}.png", clock.advance(5))
            detected.detect_ticker_from_latest_artifact()
        detected.batch_scheduler.run_once()

        status = detected.get_batch_status()

        assert status["running"] is True
        assert status["lastTriggerTime"] == clock.now().isoformat()
        assert status["sessionId"] == "db-1"

    def test_batch_status_when_stopped(self, detected):
        detected.stop_batch_scheduler()
        assert detected.get_batch_status() == {"running": False, "lastTriggerTime": None, "sessionId": None}

    def test_no_auto_start(self, classifier, advisor, summarizer, store, market, capture,
                           sender, sink, coach_config, clock):
        manager = CoachManager(
            classifier, advisor, summarizer, store, market, capture, sender, sink, coach_config,
            clock=clock, auto_start_loops=False, start_threads=False,
        )
        manager.set_active_user("user-1")
        capture.put("/captures/aapl.png", clock.now())
        classifier.classify.return_value = "AAPL"

        manager.detect_ticker_from_latest_artifact()

        assert manager.dialogue_loop is None


@pytest.mark.unit
class TestConversation:
    """User messages, history preview and timeline."""

    def test_send_user_message(self, detected, advisor, store, clock):
        result = detected.send_user_message("  should I add here?  ")

        assert result.success is True
        assert result.message == "HOLD. Wait for the break of the high."
        assert detected.state.last_user_message_at == clock.now()
        roles = [t.role for t in detected.state.history.snapshot()]
        assert roles == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
        assert [m["role"] for m in store.messages] == ["user", "assistant"]
        assert store.messages[0]["content"] == "should I add here?"

        digest, history = advisor.advise.call_args.args
        assert digest is None
        assert history[-1].content == "should I add here?"

    def test_user_message_silences_dialogue_loop(self, detected, advisor, market):
        market.set("AAPL", 100.0, 1_000_000.0)
        detected.send_user_message("thoughts?")

        detected.dialogue_loop.run_once()

        assert advisor.advise.call_count == 1

    def test_empty_message_rejected(self, detected):
        assert detected.send_user_message("   ").success is False

    def test_requires_user(self, manager):
        assert manager.send_user_message("hello").error == "No active user set"

    def test_inference_failure_leaves_history(self, detected, advisor):
        advisor.advise.side_effect = InferenceFailed("down")

        result = detected.send_user_message("hello")

        assert result.success is False
        assert len(detected.state.history) == 1

    def test_without_session_persists_unlinked(self, manager, store):
        manager.set_active_user("user-1")
        result = manager.send_user_message("hello")
        assert result.success is True
        assert store.messages[0]["session_id"] is None

    def test_history_preview(self, detected, advisor):
        advisor.advise.return_value = "x" * 150
        detected.send_user_message("first")

        history = detected.get_conversation_history()

        assert history["count"] == 3
        assert [r["role"] for r in history["recent"]] == ["system", "user", "assistant"]
        assert history["recent"][-1]["preview"] == "x" * 100 + "..."

    def test_clear_history(self, detected):
        detected.send_user_message("first")
        detected.clear_conversation_history()
        assert detected.get_conversation_history()["count"] == 1

    def test_timeline(self, detected, clock):
        clock.advance(120)

        timeline = detected.get_session_timeline()

        assert timeline["ticker"] == "AAPL"
        assert timeline["durationMinutes"] == 2
        assert timeline["screenshotCount"] == 1
        assert timeline["screenshots"][0]["filename"] == "aapl.png"

    def test_timeline_without_session(self, manager):
        assert manager.get_session_timeline() is None
