"""Interactive chat loop wrapper."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, TextIO

from ..cli_progress import ProgressTicker
from ..runs.export import export_transcript
from ..session.state import ImageValidationError, Message
from ..session.store import ConversationStore
from .command_registry import help_lines
from .intent_parser import parse_intent
from .intent_schema import Intent


class ChatLoop:
    def __init__(
        self,
        store: ConversationStore,
        *,
        stream: TextIO | None = None,
        read_line: Callable[[str], str] = input,
        export_path: Path | None = None,
    ) -> None:
        self.store = store
        self.stream = stream or sys.stdout
        self.read_line = read_line
        self.export_path = export_path

    def run(self) -> None:
        self._print("Image studio chat started. Type /help for commands.")
        for message in self.store.state.messages:
            self._print_message(message)
        while True:
            try:
                line = self.read_line("> ")
            except (EOFError, KeyboardInterrupt):
                break
            if not self.handle(line):
                break
        if self.export_path is not None:
            export_transcript(self.store.state, self.export_path)
            self._print(f"Exported to {self.export_path}")

    def handle(self, line: str) -> bool:
        """Process one input line; False means the loop should stop."""
        intent = parse_intent(line)
        if intent.action == "noop":
            return True
        if intent.action == "quit":
            return False
        if intent.action == "generate":
            self._generate(intent.prompt or "")
            return True
        handler = getattr(self, f"_handle_{intent.action}", None)
        if handler is None:
            self._print(f"Unknown command: /{intent.command_args.get('command')}. Type /help for commands.")
            return True
        handler(intent)
        return True

    def _generate(self, prompt: str) -> None:
        task = self.store.submit(prompt)
        if task is None:
            self._print("A generation is already in progress.")
            return
        ticker = ProgressTicker("Generating", stream=self.stream)
        ticker.start_ticking()
        result = task.wait()
        ticker.stop()
        self._print_message(self.store.state.messages[-1])
        if result is not None and not result.ok and result.text:
            self._print(result.text)

    def _handle_help(self, _intent: Intent) -> None:
        self._print("Commands:")
        for line in help_lines():
            self._print(f"  {line}")
        self._print("Anything else is sent to the model as a prompt.")

    def _handle_list_models(self, _intent: Intent) -> None:
        current = self.store.state.model
        for spec in self.store.registry.list():
            marker = "*" if spec.name == current else " "
            self._print(f"{marker} {spec.name}: {spec.label} ({spec.description})")

    def _handle_set_model(self, intent: Intent) -> None:
        model = intent.command_args.get("model")
        if not model:
            self._print("/model requires a model id (see /models)")
            return
        try:
            self.store.set_model(str(model))
        except ValueError as exc:
            self._print(str(exc))
            return
        self._print(f"Model set to {model}")

    def _handle_set_reference_image(self, intent: Intent) -> None:
        raw_path = intent.command_args.get("path")
        if not raw_path:
            self._print("/use requires a path")
            return
        path = Path(str(raw_path)).expanduser()
        if not path.exists():
            self._print(f"Upload failed: file not found ({path})")
            return
        try:
            self.store.upload_file(path)
        except ImageValidationError as exc:
            self._print(str(exc))
            return
        self._print_message(self.store.state.messages[-1])

    def _handle_clear_reference(self, _intent: Intent) -> None:
        self.store.clear_reference()
        self._print("Canvas cleared.")

    def _handle_set_reference_flag(self, intent: Intent) -> None:
        value = intent.command_args.get("value")
        if value is None:
            self._print("/reference expects on or off")
            return
        state = self.store.set_reference_flag(bool(value))
        if state.canvas is None:
            self._print("No canvas image yet; upload one with /use or generate first.")
            return
        self._print(f"Reference image {'on' if state.use_reference else 'off'}.")

    def _handle_save_canvas(self, intent: Intent) -> None:
        raw_path = intent.command_args.get("path")
        if not raw_path:
            self._print("/save requires a path")
            return
        try:
            path = self.store.save_canvas(Path(str(raw_path)))
        except ValueError as exc:
            self._print(str(exc))
            return
        self._print(f"Canvas saved to {path}")

    def _handle_export(self, intent: Intent) -> None:
        raw_path = intent.command_args.get("path") or self.export_path
        if not raw_path:
            self._print("/export requires a path")
            return
        path = export_transcript(self.store.state, Path(str(raw_path)))
        self._print(f"Exported to {path}")

    def _handle_status(self, _intent: Intent) -> None:
        state = self.store.state
        canvas = state.canvas.mime_type if state.canvas else "none"
        self._print(
            f"Model: {state.model} | Canvas: {canvas} | Reference: {'on' if state.reference_active else 'off'} "
            f"| Messages: {len(state.messages)}"
        )

    def _print_message(self, message: Message) -> None:
        label = "You" if message.role == "user" else "Gemini"
        suffix = f" [image: {message.image.mime_type}]" if message.image else ""
        self._print(f"{label}: {message.content}{suffix}")

    def _print(self, text: str) -> None:
        self.stream.write(f"{text}\n")
        self.stream.flush()
