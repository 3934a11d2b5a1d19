"""Image studio CLI entrypoints."""

from __future__ import annotations

import argparse
import sys
import uuid
from pathlib import Path

from .chat.loop import ChatLoop
from .cli_progress import ProgressTicker
from .config import StudioConfig, configure_logging
from .models.registry import ModelRegistry
from .models.selectors import ModelSelector
from .providers import resolve_capability
from .relay.generate import GenerationRelay
from .runs.events import EventWriter
from .server import serve
from .session.client import HttpRelayClient, LocalRelayClient, RelayClient
from .session.state import ImageValidationError
from .session.store import ConversationStore
from .utils import load_dotenv


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="studio", description="Chat-driven image studio")
    parser.add_argument("--debug", action="store_true", default=None, help="Verbose logging")
    sub = parser.add_subparsers(dest="command")

    serve_cmd = sub.add_parser("serve", help="Run the HTTP generation relay")
    serve_cmd.add_argument("--host")
    serve_cmd.add_argument("--port", type=int)
    serve_cmd.add_argument("--provider", choices=("gemini", "dryrun"))
    serve_cmd.add_argument("--model", dest="default_model", help="Default model id when requests omit one")
    serve_cmd.add_argument("--timeout", dest="timeout_s", type=float, help="Upstream call window in seconds")

    chat = sub.add_parser("chat", help="Interactive chat loop")
    target = chat.add_mutually_exclusive_group()
    target.add_argument("--relay-url", dest="relay_url", help="Relay endpoint (default from STUDIO_RELAY_URL)")
    target.add_argument("--local", action="store_true", help="Run the relay in-process")
    chat.add_argument("--provider", choices=("gemini", "dryrun"))
    chat.add_argument("--model", help="Image model for the session")
    chat.add_argument("--events", help="Path to events.jsonl")
    chat.add_argument("--export", help="Write an HTML transcript here on exit")

    run = sub.add_parser("run", help="Single-turn generation")
    run.add_argument("--prompt", required=True)
    run.add_argument("--image", help="Reference image to edit")
    run.add_argument("--out", required=True, help="Where to write the resulting image")
    run.add_argument("--provider", choices=("gemini", "dryrun"))
    run.add_argument("--model")
    run.add_argument("--relay-url", dest="relay_url", help="Use a running relay instead of an in-process one")

    return parser


def _build_relay(config: StudioConfig) -> GenerationRelay:
    return GenerationRelay(
        resolve_capability(config),
        default_model=config.default_model,
        timeout_s=config.timeout_s,
        temperature=config.temperature,
    )


def _resolve_model(requested: str | None, config: StudioConfig, registry: ModelRegistry) -> str:
    selection = ModelSelector(registry, default=config.default_model).select(requested)
    if requested and selection.fallback_reason:
        print(f"Model fallback: {selection.fallback_reason}")
    return selection.model.name


def _build_client(args: argparse.Namespace, config: StudioConfig) -> RelayClient:
    if getattr(args, "local", False) or (args.command == "run" and not args.relay_url):
        return LocalRelayClient(_build_relay(config))
    return HttpRelayClient(config.resolved_relay_url, timeout_s=config.timeout_s + 30.0)


def _handle_serve(args: argparse.Namespace, config: StudioConfig) -> int:
    config = config.with_overrides(
        host=args.host,
        port=args.port,
        provider=args.provider,
        default_model=args.default_model,
        timeout_s=args.timeout_s,
    )
    serve(_build_relay(config), config.host, config.port)
    return 0


def _handle_chat(args: argparse.Namespace, config: StudioConfig) -> int:
    config = config.with_overrides(provider=args.provider, relay_url=args.relay_url)
    registry = ModelRegistry()
    model = _resolve_model(args.model, config, registry)
    events = EventWriter(Path(args.events), uuid.uuid4().hex) if args.events else None
    store = ConversationStore(_build_client(args, config), model=model, events=events, registry=registry)
    try:
        ChatLoop(store, export_path=Path(args.export) if args.export else None).run()
    finally:
        store.close()
    return 0


def _handle_run(args: argparse.Namespace, config: StudioConfig) -> int:
    config = config.with_overrides(provider=args.provider, relay_url=args.relay_url)
    registry = ModelRegistry()
    store = ConversationStore(
        _build_client(args, config),
        model=_resolve_model(args.model, config, registry),
        registry=registry,
    )
    try:
        if args.image:
            try:
                store.upload_file(Path(args.image))
            except (ImageValidationError, OSError) as exc:
                print(f"Reference image rejected: {exc}")
                return 1
        task = store.submit(args.prompt)
        if task is None:
            print("Prompt is empty.")
            return 1
        ticker = ProgressTicker("Generating")
        ticker.start_ticking()
        result = task.wait()
        ticker.stop()
        if result is None or not result.ok:
            error = result.error if result else "no result"
            print(f"Generation failed: {error}")
            if result is not None and result.text:
                print(result.text)
            return 1
        out_path = store.save_canvas(Path(args.out))
        print(store.state.messages[-1].content)
        print(f"Saved {out_path}")
        return 0
    finally:
        store.close()


def main() -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args()
    try:
        config = StudioConfig.from_env().with_overrides(debug=args.debug)
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        raise SystemExit(2)
    configure_logging(config.debug)
    if args.command == "serve":
        raise SystemExit(_handle_serve(args, config))
    if args.command == "chat":
        raise SystemExit(_handle_chat(args, config))
    if args.command == "run":
        raise SystemExit(_handle_run(args, config))
    parser.print_help()
    raise SystemExit(1)


if __name__ == "__main__":
    main()
