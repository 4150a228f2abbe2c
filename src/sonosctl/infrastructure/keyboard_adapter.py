import contextlib
import logging
import sys
import termios
import tty
from dataclasses import dataclass
from typing import Iterable, Iterator

from sonosctl.domain.events import CommandType, InputEvent

LOG = logging.getLogger(__name__)

_KEYS: dict[CommandType, tuple[str, ...]] = {
    CommandType.PLAY_PAUSE: ("p", "play"),
    CommandType.NEXT: ("n", "next"),
    CommandType.PREVIOUS: ("b", "prev"),
    CommandType.SHUFFLE: ("s", "shuffle"),
    CommandType.VOLUME_UP: ("u", "+", "up"),
    CommandType.VOLUME_DOWN: ("d", "-", "down"),
    CommandType.MUTE: ("m", "mute"),
}
_KEYMAP = {key: kind for kind, keys in _KEYS.items() for key in keys}
_QUIT = frozenset({"q", "quit", "exit"})


def parse_keyboard_command(line: str, source: str = "keyboard") -> InputEvent | None:
    # Space toggles playback in single-key mode; strip() would swallow it.
    key = "p" if line == " " else line.strip().lower()
    kind = _KEYMAP.get(key)
    if kind is None:
        return None
    return InputEvent(kind=kind, source=source, key=key)


@dataclass
class KeyboardAdapter:
    """Reads console keys: single keystrokes on a TTY, whole lines otherwise."""

    source: str = "keyboard"

    def events(self) -> Iterator[InputEvent]:
        if sys.stdin.isatty():
            with _stdin_cbreak():
                yield from self._translate(self._keystrokes())
        else:
            yield from self._translate(self._lines())

    def _translate(self, tokens: Iterable[str]) -> Iterator[InputEvent]:
        for token in tokens:
            if token.strip().lower() in _QUIT:
                LOG.debug("keyboard quit requested")
                return
            event = parse_keyboard_command(token, source=self.source)
            if event is None:
                LOG.debug("ignored key=%r", token)
                continue
            yield event

    @staticmethod
    def _keystrokes() -> Iterator[str]:
        while True:
            ch = sys.stdin.read(1)
            if ch == "":
                return
            yield ch

    @staticmethod
    def _lines() -> Iterator[str]:
        while True:
            try:
                line = input()
            except EOFError:
                return
            if line.strip():
                yield line


@contextlib.contextmanager
def _stdin_cbreak():
    fd = sys.stdin.fileno()
    saved = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
