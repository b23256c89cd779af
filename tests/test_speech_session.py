from __future__ import annotations

import pytest

from kuber.orchestrator.events import PlatformMode, SpeechStatus
from kuber.speech.session import SpeechSessionManager, resolve_platform_mode


def restart_manager(factory) -> SpeechSessionManager:
    return SpeechSessionManager(factory, platform_mode=PlatformMode.RESTART_ON_TIMEOUT)


def terminate_manager(factory) -> SpeechSessionManager:
    return SpeechSessionManager(factory, platform_mode=PlatformMode.TERMINATE_ON_TIMEOUT)


def test_start_binds_device_lazily_with_streaming_flags(device_factory) -> None:
    manager = SpeechSessionManager(device_factory, language="hi-IN")
    assert device_factory.calls == 0

    assert manager.start() is True

    device = device_factory.device
    assert device_factory.calls == 1
    assert device.starts == 1
    assert device.continuous is True
    assert device.interim_results is True
    assert device.language == "hi-IN"
    assert manager.status is SpeechStatus.LISTENING


def test_start_while_listening_is_a_no_op(device_factory) -> None:
    manager = terminate_manager(device_factory)
    manager.start()
    device_factory.device.hear("hello")

    assert manager.start() is False
    assert device_factory.device.starts == 1
    assert manager.live_transcript == "hello"


def test_device_is_reused_across_sessions(device_factory) -> None:
    manager = terminate_manager(device_factory)
    manager.start()
    manager.stop()
    manager.start()
    assert device_factory.calls == 1
    assert device_factory.device.starts == 2


def test_unavailable_device_is_reported_and_start_refused() -> None:
    manager = SpeechSessionManager(None)
    assert manager.available is False
    assert manager.start() is False
    assert manager.status is SpeechStatus.IDLE


def test_partial_results_replace_rather_than_append(device_factory) -> None:
    manager = terminate_manager(device_factory)
    manager.start()
    device = device_factory.device

    device.hear("what is")
    device.hear("what is the", " gold rate")

    assert manager.live_transcript == "what is the gold rate"


def test_forced_restart_scenario_delivers_stitched_transcript(device_factory) -> None:
    manager = restart_manager(device_factory)
    device = device_factory.device
    manager.start()

    device.hear("inves")
    device.hear("invest men")
    device.end()
    assert manager.status is SpeechStatus.LISTENING
    assert device.starts == 2
    assert manager.session.finalized_prefix == "invest men "

    device.hear("t in sip")
    assert manager.live_transcript == "invest men t in sip"

    assert manager.stop() == "invest men t in sip"
    assert manager.status is SpeechStatus.IDLE
    assert device.starts == 2


def test_many_restarts_keep_every_hypothesis(device_factory) -> None:
    manager = restart_manager(device_factory)
    device = device_factory.device
    manager.start()

    hypotheses = ["I want", "to start", "a monthly", "SIP for", "my daughter"]
    for index, text in enumerate(hypotheses):
        device.hear(text)
        if index < len(hypotheses) - 1:
            device.end()

    assert device.starts == len(hypotheses)
    assert manager.stop() == " ".join(hypotheses)


def test_silent_restarts_do_not_double_spaces(device_factory) -> None:
    manager = restart_manager(device_factory)
    device = device_factory.device
    manager.start()

    device.hear("gold")
    device.end()
    device.end()
    device.hear("loan")

    assert manager.stop() == "gold loan"


def test_no_restart_after_explicit_stop(device_factory) -> None:
    manager = restart_manager(device_factory)
    device = device_factory.device
    manager.start()
    device.hear("hello")

    manager.stop()
    device.end()

    assert device.starts == 1
    assert manager.status is SpeechStatus.IDLE


def test_cancel_discards_transcript_and_does_not_restart(device_factory) -> None:
    manager = restart_manager(device_factory)
    device = device_factory.device
    manager.start()
    device.hear("never mind")
    device.end()
    device.hear("this")

    manager.cancel()
    device.end()

    assert device.aborts == 1
    assert device.starts == 2
    assert manager.live_transcript == ""
    assert manager.session.finalized_prefix == ""
    assert manager.status is SpeechStatus.IDLE


def test_terminate_mode_ends_session_on_device_end(device_factory) -> None:
    manager = terminate_manager(device_factory)
    device = device_factory.device
    manager.start()
    device.hear("hello there")

    device.end()

    assert manager.status is SpeechStatus.IDLE
    assert device.starts == 1
    # The hypothesis stays readable as a draft.
    assert manager.live_transcript == "hello there"
    assert manager.stop() == ""
    assert device.stops == 0


def test_next_start_clears_previous_draft(device_factory) -> None:
    manager = terminate_manager(device_factory)
    device = device_factory.device
    manager.start()
    device.hear("old words")
    device.end()

    manager.start()
    assert manager.live_transcript == ""


def test_stop_returns_trimmed_transcript_and_resets(device_factory) -> None:
    manager = terminate_manager(device_factory)
    manager.start()
    device_factory.device.hear("  hello  ")

    assert manager.stop() == "hello"
    assert manager.live_transcript == ""


def test_whitespace_only_transcript_is_empty(device_factory) -> None:
    manager = terminate_manager(device_factory)
    manager.start()
    device_factory.device.hear("   ")
    assert manager.stop() == ""


def test_stop_and_cancel_without_session_are_no_ops(device_factory) -> None:
    manager = terminate_manager(device_factory)
    assert manager.stop() == ""
    manager.cancel()
    assert device_factory.calls == 0


def test_results_after_stop_are_ignored(device_factory) -> None:
    manager = terminate_manager(device_factory)
    manager.start()
    manager.stop()
    device_factory.device.hear("late result")
    assert manager.live_transcript == ""


def test_failed_start_leaves_session_idle(make_device_factory) -> None:
    factory = make_device_factory(fail_on_start=1)
    manager = restart_manager(factory)

    assert manager.start() is False
    assert manager.status is SpeechStatus.IDLE


def test_failed_restart_abandons_session(make_device_factory) -> None:
    factory = make_device_factory(fail_on_start=2)
    manager = restart_manager(factory)
    manager.start()
    factory.device.hear("partial words")

    factory.device.end()

    assert manager.status is SpeechStatus.IDLE
    assert manager.live_transcript == ""


def test_device_fault_abandons_session_without_restart(device_factory) -> None:
    manager = restart_manager(device_factory)
    device = device_factory.device
    manager.start()
    device.hear("half a sentence")

    device.fail(OSError("input overflowed"))

    assert manager.status is SpeechStatus.IDLE
    assert manager.live_transcript == ""
    assert device.starts == 1


def test_device_fault_after_stop_is_ignored(device_factory) -> None:
    manager = restart_manager(device_factory)
    manager.start()
    manager.stop()

    device_factory.device.fail(OSError("late fault"))

    assert manager.status is SpeechStatus.IDLE
    assert device_factory.device.starts == 1


def test_listeners_observe_status_and_transcript(device_factory) -> None:
    manager = terminate_manager(device_factory)
    seen: list[tuple[str, str]] = []
    manager.subscribe(lambda session: seen.append((session.status.value, session.live_transcript)))

    manager.start()
    device_factory.device.hear("hi")
    manager.stop()

    assert seen == [("listening", ""), ("listening", "hi"), ("idle", "")]


def test_listener_errors_do_not_break_the_session(device_factory) -> None:
    manager = terminate_manager(device_factory)

    def broken(_session) -> None:
        raise RuntimeError("ui gone")

    manager.subscribe(broken)
    manager.start()
    device_factory.device.hear("still works")
    assert manager.stop() == "still works"


@pytest.mark.parametrize(
    ("setting", "user_agent", "device_restarts", "expected"),
    [
        ("restart", None, False, PlatformMode.RESTART_ON_TIMEOUT),
        ("terminate", "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)", True, PlatformMode.TERMINATE_ON_TIMEOUT),
        ("auto", "Mozilla/5.0 (Linux; Android 14; Pixel 8)", False, PlatformMode.RESTART_ON_TIMEOUT),
        ("auto", "Mozilla/5.0 (Windows NT 10.0; Win64; x64)", True, PlatformMode.TERMINATE_ON_TIMEOUT),
        ("auto", None, True, PlatformMode.RESTART_ON_TIMEOUT),
        ("auto", None, False, PlatformMode.TERMINATE_ON_TIMEOUT),
    ],
)
def test_resolve_platform_mode(setting, user_agent, device_restarts, expected) -> None:
    assert resolve_platform_mode(setting, user_agent=user_agent, device_restarts_on_timeout=device_restarts) is expected
