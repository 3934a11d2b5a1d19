"""Shared slash-command metadata for parse + chat handling."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandSpec:
    command: str
    action: str
    arg_kind: str
    help: str


RAW_ARG_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("model", "set_model", "raw", "Select the image model for this session"),
    CommandSpec("reference", "set_reference_flag", "raw", "Attach the canvas to the next prompt (on|off)"),
)

SINGLE_PATH_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("use", "set_reference_image", "single_path", "Load an image file as the live canvas"),
    CommandSpec("save", "save_canvas", "single_path", "Write the canvas image to a file"),
    CommandSpec("export", "export", "single_path", "Export the conversation to HTML"),
)

NO_ARG_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("models", "list_models", "none", "List available models"),
    CommandSpec("clear", "clear_reference", "none", "Drop the canvas image"),
    CommandSpec("status", "status", "none", "Show model, canvas and reference state"),
    CommandSpec("help", "help", "none", "Show help"),
    CommandSpec("quit", "quit", "none", "Leave the chat"),
)

RAW_ARG_COMMAND_MAP = {spec.command: spec.action for spec in RAW_ARG_COMMANDS}
SINGLE_PATH_COMMAND_MAP = {spec.command: spec.action for spec in SINGLE_PATH_COMMANDS}
NO_ARG_COMMAND_MAP = {spec.command: spec.action for spec in NO_ARG_COMMANDS}

ALL_COMMANDS: tuple[CommandSpec, ...] = RAW_ARG_COMMANDS + SINGLE_PATH_COMMANDS + NO_ARG_COMMANDS


def help_lines() -> list[str]:
    width = max(len(spec.command) for spec in ALL_COMMANDS) + 1
    return [f"/{spec.command:<{width}} {spec.help}" for spec in ALL_COMMANDS]
