import itertools
import sys
import threading
from typing import TextIO

_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
_FRAME_INTERVAL_SECONDS = 0.08


class Spinner:
    """Animated "waiting for the coach" indicator drawn on the current line.

    Only animates when the stream is an interactive terminal; otherwise it is
    a no-op, so piped output and captured test output stay clean.
    """

    def __init__(self, prefix: str = "", label: str = " Thinking...", stream: TextIO | None = None):
        self._prefix = prefix
        self._label = label
        self._stream = stream or sys.stdout
        self._done = threading.Event()
        self._worker: threading.Thread | None = None

    def __enter__(self) -> "Spinner":
        if self._is_interactive():
            self._worker = threading.Thread(target=self._animate, daemon=True)
            self._worker.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._worker is None:
            return
        self._done.set()
        self._worker.join()
        self._worker = None
        blank = " " * (1 + len(self._label))
        self._write(f"\r{self._prefix}{blank}\r{self._prefix}")

    def _is_interactive(self) -> bool:
        isatty = getattr(self._stream, "isatty", None)
        return bool(isatty and isatty())

    def _animate(self) -> None:
        for frame in itertools.cycle(_FRAMES):
            if self._done.is_set():
                return
            try:
                self._write(f"\r{self._prefix}{frame}{self._label}")
            except (UnicodeEncodeError, OSError):
                return
            self._done.wait(_FRAME_INTERVAL_SECONDS)

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()
