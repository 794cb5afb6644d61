from __future__ import annotations
from collections import deque
from datetime import datetime

from textual.widgets import RichLog
from textual.events import Resize
from rich.text import Text

from ...server.quiz_types import ChatEntry, ChatKind

# (speaker style, body style) per entry kind
KIND_STYLES = {
    ChatKind.SYSTEM: ("bold yellow", "yellow"),
    ChatKind.YOU: ("bold cyan", ""),
    ChatKind.PEER: ("bold green", ""),
}


class RichLogChat(RichLog):
    """Session chat log. Keeps its own bounded history so it can reflow on resize."""
    wrap = True
    markup = False
    auto_scroll = True
    min_width = 1

    DEFAULT_CSS = """
    RichLogChat {
        border: solid $boost 50%;
        background: $boost 10%;
        height: 1fr;
        width: 1fr;
    }
    """

    MAX_LINES = 200

    peer_name = "Peer"  # "Learner" on the educator side, "Educator" on the learner side

    def on_mount(self) -> None:
        self.history: deque[Text] = deque(maxlen=self.MAX_LINES)

    def speaker(self, kind: ChatKind) -> str | None:
        if kind == ChatKind.YOU:
            return "You"
        if kind == ChatKind.PEER:
            return self.peer_name
        return None

    def render_entry(self, entry: ChatEntry) -> Text:
        clock = datetime.fromtimestamp(entry.timestamp / 1000).strftime("%H:%M:%S")
        who_style, body_style = KIND_STYLES.get(entry.kind, ("bold", ""))
        line = Text(f"[{clock}] ", style="dim")
        who = self.speaker(entry.kind)
        if who:
            line.append(who, style=who_style)
            line.append(": ")
        line.append(entry.text, style=body_style)
        return line

    def append_entry(self, entry: ChatEntry) -> None:
        line = self.render_entry(entry)
        self.history.append(line)
        self.write(line, expand=True, shrink=True)

    def on_resize(self, _: Resize) -> None:
        self.clear()
        for line in self.history:
            self.write(line, expand=True, shrink=True)
