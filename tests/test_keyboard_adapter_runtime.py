import contextlib

import pytest

from sonosctl.domain.events import CommandType
from sonosctl.infrastructure import keyboard_adapter


def test_keyboard_events_line_mode(monkeypatch) -> None:
    class FakeStdin:
        def isatty(self):
            return False

    values = iter(["", "u", "stop", "next", "q", "m"])
    monkeypatch.setattr(keyboard_adapter.sys, "stdin", FakeStdin())
    monkeypatch.setattr("builtins.input", lambda: next(values))
    adapter = keyboard_adapter.KeyboardAdapter()
    events = list(adapter.events())
    assert [e.key for e in events] == ["u", "next"]


def test_keyboard_events_line_mode_stops_on_eof(monkeypatch) -> None:
    class FakeStdin:
        def isatty(self):
            return False

    def _eof():
        raise EOFError

    monkeypatch.setattr(keyboard_adapter.sys, "stdin", FakeStdin())
    monkeypatch.setattr("builtins.input", _eof)
    assert list(keyboard_adapter.KeyboardAdapter().events()) == []


def test_keyboard_events_single_key_mode(monkeypatch) -> None:
    class FakeStdin:
        def __init__(self):
            self.keys = iter([" ", "u", "x", "q", "n"])

        def isatty(self):
            return True

        def read(self, _n):
            return next(self.keys)

    monkeypatch.setattr(keyboard_adapter.sys, "stdin", FakeStdin())
    monkeypatch.setattr(keyboard_adapter, "_stdin_cbreak", contextlib.nullcontext)
    adapter = keyboard_adapter.KeyboardAdapter()
    events = list(adapter.events())
    assert [e.kind for e in events] == [CommandType.PLAY_PAUSE, CommandType.VOLUME_UP]


def test_stdin_cbreak_restores_terminal_even_on_error(monkeypatch) -> None:
    trail = []

    class FakeStdin:
        def fileno(self):
            return 3

    monkeypatch.setattr(keyboard_adapter.sys, "stdin", FakeStdin())
    monkeypatch.setattr(
        keyboard_adapter.termios, "tcgetattr", lambda fd: trail.append(("save", fd)) or "attrs"
    )
    monkeypatch.setattr(keyboard_adapter.tty, "setcbreak", lambda fd: trail.append(("cbreak", fd)))
    monkeypatch.setattr(
        keyboard_adapter.termios,
        "tcsetattr",
        lambda fd, when, attrs: trail.append(("restore", fd, attrs)),
    )

    with pytest.raises(RuntimeError):
        with keyboard_adapter._stdin_cbreak():
            raise RuntimeError("reader crashed")

    assert trail == [("save", 3), ("cbreak", 3), ("restore", 3, "attrs")]
