"""Export a chat session to HTML."""

from __future__ import annotations

import html
from datetime import datetime
from pathlib import Path

from ..session.state import Message, SessionState


def _role_label(message: Message) -> str:
    return "You" if message.role == "user" else "Gemini"


def _format_time(created_at_ms: int) -> str:
    if not created_at_ms:
        return ""
    return datetime.fromtimestamp(created_at_ms / 1000).strftime("%H:%M")


def _message_card(message: Message) -> str:
    side = "user" if message.role == "user" else "assistant"
    image = ""
    if message.image is not None:
        image = f"<img src='{html.escape(message.image.data_url())}' alt='attached image'>"
    return (
        f"<article class='msg {side}'>"
        f"<header><span class='role'>{_role_label(message)}</span>"
        f"<time>{html.escape(_format_time(message.created_at))}</time></header>"
        f"<p>{html.escape(message.content)}</p>"
        f"{image}"
        f"</article>"
    )


def export_transcript(state: SessionState, out_path: Path) -> Path:
    cards = "".join(_message_card(message) for message in state.messages)
    if state.canvas is not None:
        canvas = f"<img src='{html.escape(state.canvas.data_url())}' alt='Current canvas preview'>"
    else:
        canvas = "<div class='empty'>No canvas yet</div>"
    reference = "on" if state.reference_active else "off"

    html_doc = f"""
<!doctype html>
<html>
<head>
  <meta charset='utf-8'>
  <title>Image Studio Export</title>
  <style>
    body {{ font-family: Arial, sans-serif; background: #0b0f17; color: #e4e4e7; margin: 0; padding: 20px; }}
    .layout {{ display: flex; gap: 24px; align-items: flex-start; }}
    .chat {{ flex: 1; display: flex; flex-direction: column; gap: 12px; }}
    .msg {{ border-radius: 12px; padding: 12px; max-width: 85%; }}
    .msg.user {{ margin-left: auto; background: rgba(16, 185, 129, 0.12); }}
    .msg.assistant {{ margin-right: auto; background: rgba(63, 63, 70, 0.6); }}
    .msg header {{ display: flex; justify-content: space-between; font-size: 11px; color: #a1a1aa; }}
    .msg img, .canvas img {{ max-width: 100%; border-radius: 8px; }}
    .canvas {{ width: 40%; }}
    .meta {{ font-size: 12px; color: #a1a1aa; }}
    .empty {{ padding: 40px; text-align: center; border: 1px dashed #3f3f46; border-radius: 8px; }}
  </style>
</head>
<body>
  <h1>Image Studio</h1>
  <div class='meta'>Model: {html.escape(state.model)} · Reference: {reference}</div>
  <div class='layout'>
    <section class='chat'>{cards}</section>
    <aside class='canvas'><h2>Live canvas</h2>{canvas}</aside>
  </div>
</body>
</html>
"""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(html_doc, encoding="utf-8")
    return out_path
