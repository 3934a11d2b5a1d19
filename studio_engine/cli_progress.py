"""CLI progress helpers."""

from __future__ import annotations

import os
import shutil
import sys
import threading
import time
from typing import TextIO

_BOLD = "\x1b[1m"
_GREY = "\x1b[38;2;150;157;165m"
_RESET = "\x1b[0m"


def progress_line(label: str, start: float | None = None, done: bool = False) -> tuple[str, float]:
    now = time.monotonic()
    origin = now if start is None else start
    elapsed = max(0, int(now - origin))
    minutes, seconds = divmod(elapsed, 60)
    suffix = "done" if done else "waiting on the model"
    return f"• {label} ({minutes}m {seconds:02d}s • {suffix})", origin


def elapsed_line(label: str, seconds: float, width: int | None = None) -> str:
    duration = _format_duration(int(max(0, seconds)))
    resolved_width = width if width is not None else _resolve_terminal_width(sys.stdout, 100)
    line = _separator_line(f"{label} {duration}", resolved_width)
    return f"{_GREY}{line}{_RESET}"


class ProgressTicker:
    """Redraws a single status line while a turn is in flight.

    On a non-tty stream it prints the start line once and the elapsed line on
    stop, so piped output stays readable.
    """

    def __init__(
        self,
        label: str,
        stream: TextIO | None = None,
        interval_s: float = 1.0,
        done_label: str = "Rendered in",
    ) -> None:
        self.label = label
        self.done_label = done_label
        self.stream = stream or sys.stdout
        self.interval_s = max(0.2, interval_s)
        self.start: float | None = None
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._enabled = bool(getattr(self.stream, "isatty", lambda: False)())

    def start_ticking(self) -> None:
        line, self.start = progress_line(self.label)
        if not self._enabled:
            self.stream.write(f"{_BOLD}{line}{_RESET}\n")
            self.stream.flush()
            return
        self._redraw(line)
        self._thread.start()

    def stop(self) -> float:
        elapsed = time.monotonic() - (self.start or time.monotonic())
        if self._thread.is_alive():
            self._stop.set()
            self._thread.join()
        done = elapsed_line(self.done_label, elapsed, width=_resolve_terminal_width(self.stream, 100))
        if self._enabled:
            self.stream.write("\r")
            self.stream.write(done)
            self.stream.write("\033[K\n")
        else:
            self.stream.write(f"{done}\n")
        self.stream.flush()
        return elapsed

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            line, _ = progress_line(self.label, self.start)
            self._redraw(line)

    def _redraw(self, line: str) -> None:
        self.stream.write("\r")
        self.stream.write(f"{_BOLD}{line}{_RESET}")
        self.stream.write("\033[K")
        self.stream.flush()


def _format_duration(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def _separator_line(label: str, width: int) -> str:
    content = f" {label} "
    if width <= len(content) + 2:
        return content.strip()
    remaining = width - len(content)
    left = remaining // 2
    right = remaining - left
    return f"{'─' * left}{content}{'─' * right}"


def _resolve_terminal_width(stream: TextIO | None, fallback: int) -> int:
    if stream and hasattr(stream, "fileno"):
        try:
            return os.get_terminal_size(stream.fileno()).columns
        except (OSError, ValueError, AttributeError):
            pass
    return shutil.get_terminal_size(fallback=(fallback, 20)).columns
