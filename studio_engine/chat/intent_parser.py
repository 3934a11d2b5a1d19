"""Parse chat input into structured intents."""

from __future__ import annotations

import re
import shlex

from .command_registry import NO_ARG_COMMAND_MAP, RAW_ARG_COMMAND_MAP, SINGLE_PATH_COMMAND_MAP
from .intent_schema import Intent

_SLASH_PATTERN = re.compile(r"^/(\w+)(?:\s+(.*))?$")
_TRUE_WORDS = {"on", "true", "yes", "1"}
_FALSE_WORDS = {"off", "false", "no", "0"}


def _parse_single_path_arg(arg: str) -> str:
    """Parse a single path argument (best-effort).

    Accepts quoted paths for spaces. If the user forgets to quote a path that
    contains spaces, join tokens back together as a last-resort.
    """
    if not arg:
        return ""
    try:
        parts = shlex.split(arg)
    except ValueError:
        parts = arg.split()
    return " ".join(part for part in parts if part)


def _parse_switch(arg: str) -> bool | None:
    lowered = arg.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    return None


def parse_intent(text: str) -> Intent:
    raw = text.strip()
    if not raw:
        return Intent(action="noop", raw=text)
    match = _SLASH_PATTERN.match(raw)
    if match:
        command = match.group(1).lower()
        arg = (match.group(2) or "").strip()
        if command in RAW_ARG_COMMAND_MAP:
            action = RAW_ARG_COMMAND_MAP[command]
            if action == "set_reference_flag":
                return Intent(action=action, raw=text, command_args={"value": _parse_switch(arg)})
            return Intent(action=action, raw=text, command_args={"model": arg})
        if command in SINGLE_PATH_COMMAND_MAP:
            return Intent(
                action=SINGLE_PATH_COMMAND_MAP[command],
                raw=text,
                command_args={"path": _parse_single_path_arg(arg)},
            )
        if command in NO_ARG_COMMAND_MAP:
            return Intent(action=NO_ARG_COMMAND_MAP[command], raw=text)
        return Intent(action="unknown", raw=text, command_args={"command": command, "arg": arg})

    return Intent(action="generate", raw=text, prompt=raw)
