from sonosctl.domain.events import CommandType, InputEvent
from sonosctl.domain.policy import CommandPolicy


def test_policy_deduplicates_same_toggle_within_window() -> None:
    p = CommandPolicy(dedupe_window_s=0.5)
    ev = InputEvent(kind=CommandType.PLAY_PAUSE, source="keyboard", key="p")
    assert p.should_emit(ev, now=1.0) is True
    assert p.should_emit(ev, now=1.1) is False
    assert p.should_emit(ev, now=1.4) is False
    assert p.should_emit(ev, now=1.6) is True


def test_policy_tracks_kinds_independently() -> None:
    p = CommandPolicy(dedupe_window_s=0.5)
    play = InputEvent(kind=CommandType.PLAY_PAUSE, source="keyboard", key="p")
    nxt = InputEvent(kind=CommandType.NEXT, source="keyboard", key="n")
    assert p.should_emit(play, now=1.0) is True
    assert p.should_emit(nxt, now=1.1) is True
    assert p.should_emit(play, now=1.2) is False


def test_policy_never_suppresses_volume_steps() -> None:
    p = CommandPolicy(dedupe_window_s=10.0)
    up = InputEvent(kind=CommandType.VOLUME_UP, source="keyboard", key="u")
    down = InputEvent(kind=CommandType.VOLUME_DOWN, source="keyboard", key="d")
    assert all(p.should_emit(up, now=1.0 + i * 0.01) for i in range(5))
    assert p.should_emit(down, now=1.05) is True
