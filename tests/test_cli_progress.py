from __future__ import annotations

import time

from studio_engine.cli_progress import ProgressTicker, elapsed_line, progress_line


class FakeStream:
    def __init__(self, is_tty: bool) -> None:
        self._isatty = is_tty
        self.buffer: list[str] = []

    def isatty(self) -> bool:  # pragma: no cover - signature mimic
        return self._isatty

    def write(self, data: str) -> None:
        self.buffer.append(data)

    def flush(self) -> None:  # pragma: no cover - no-op for tests
        return None

    @property
    def text(self) -> str:
        return "".join(self.buffer)


def test_ticker_non_tty_prints_once() -> None:
    stream = FakeStream(is_tty=False)
    ticker = ProgressTicker("Generating", stream=stream, interval_s=0.01)
    ticker.start_ticking()
    elapsed = ticker.stop()
    output = stream.text
    lines = [line for line in output.splitlines() if line.strip()]
    assert len(lines) == 2
    assert "Generating" in lines[0]
    assert "Rendered in" in lines[1]
    assert "\r" not in output
    assert elapsed >= 0


def test_ticker_tty_updates_in_place() -> None:
    stream = FakeStream(is_tty=True)
    ticker = ProgressTicker("Generating", stream=stream, interval_s=0.01)
    ticker.start_ticking()
    time.sleep(0.03)
    ticker.stop()
    output = stream.text
    assert "\r" in output
    assert "\x1b[K" in output
    assert output.count("Rendered in") == 1


def test_progress_line_reports_elapsed_time() -> None:
    line, origin = progress_line("Generating", start=time.monotonic() - 65)
    assert line.startswith("• Generating (1m 05s")
    assert "waiting on the model" in line
    done, _ = progress_line("Generating", start=origin, done=True)
    assert done.endswith("done)")


def test_elapsed_line_centers_label() -> None:
    line = elapsed_line("Rendered in", 3725, width=40)
    assert " Rendered in 1h 2m 05s " in line
    assert "─" in line
