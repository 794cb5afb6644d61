"""Learner console: chat with the educator, answer quizzes, ask for hints, send doubts."""
import logging

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.widgets import Footer, Input, Static

from ..config import Settings
from ..server.events import (
    FEEDBACK_CHANGED, HINT_CHANGED, MESSAGE_ADDED, QUIZ_CHANGED, STATUS_CHANGED,
)
from ..server.generation import HintGenerator, TextGenerator
from ..server.quiz_types import LABELS, ChatEntry
from .learner_session import LearnerSession
from .ws_client import CONNECTED, ERROR
from .widgets.chat import RichLogChat

logger = logging.getLogger("sahayak.client.learner")


class LearnerTUI(App):
    """Learner side of the classroom session."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #header {
        height: 1;
        background: green;
        color: white;
        padding: 0 1;
    }

    #quiz {
        height: auto;
        border: round cyan;
        padding: 0 1;
    }

    #help {
        height: auto;
        color: $text-muted;
        padding: 0 1;
    }
    """

    def __init__(self, settings: Settings, url: str):
        super().__init__()
        self.settings = settings
        hints = HintGenerator(TextGenerator.for_model(settings, settings.learner_model))
        self.session = LearnerSession(url, hint_generator=hints, spawn=self._spawn)

    def _spawn(self, coro):
        return self.run_worker(coro, group="session")

    def compose(self) -> ComposeResult:
        yield Static("", id="header")
        chat = RichLogChat(id="chat")
        chat.peer_name = "Educator"
        yield chat
        yield Static("", id="quiz")
        yield Input(placeholder="Type your message and press Enter to send", id="input")
        yield Static("", id="help")
        yield Footer()

    async def on_mount(self) -> None:
        events = self.session.events
        events.subscribe(STATUS_CHANGED, lambda status: self._render_header())
        events.subscribe(MESSAGE_ADDED, self._on_message)
        for event in (QUIZ_CHANGED, HINT_CHANGED, FEEDBACK_CHANGED):
            events.subscribe(event, lambda *_: self._render_quiz())

        self._render_header()
        self._render_quiz()
        logger.info(f"learner connecting to {self.session.url}")
        self.session.connect()
        self.query_one("#input", Input).focus()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value
        event.input.value = ""
        await self.session.handle_input(value)
        self._render_quiz()

    async def on_unmount(self) -> None:
        await self.session.shutdown()

    # ---------- Rendering ----------

    def _on_message(self, entry: ChatEntry) -> None:
        self.query_one("#chat", RichLogChat).append_entry(entry)

    def _render_header(self) -> None:
        status = self.session.status
        color = {CONNECTED: "white", ERROR: "red"}.get(status, "yellow")
        self.query_one("#header", Static).update(
            f"Sahayak - Learner Mode | Educator: {escape(self.session.url)} | Status: [{color}]{status}[/]"
        )

    def _render_quiz(self) -> None:
        s = self.session
        panel = self.query_one("#quiz", Static)
        help_text = self.query_one("#help", Static)
        if s.quiz is None:
            panel.display = False
            help_text.update("Type your message and press Enter | 'r' to reconnect | /doubt <text> when doubts are open")
            return

        panel.display = True
        lines = [f"[b cyan]QUIZ[/]  {escape(s.quiz.question)}"]
        for label, option in zip(LABELS, s.quiz.options):
            lines.append(f"  {label}. {escape(option)}")
        if s.generating_hint:
            lines.append("[dim]Generating hint...[/]")
        elif s.hint:
            if s.hint_expanded:
                lines.append(f"[yellow]Hint:[/] {escape(s.hint)}")
            else:
                lines.append("[yellow]Hint available[/] (type 'toggle' to show)")
        if s.feedback is not None:
            color = "green" if s.feedback["correct"] else "red"
            lines.append(f"[{color}]{escape(s.feedback['message'])}[/]")
        panel.update("\n".join(lines))

        if s.feedback is not None:
            help_text.update("Quiz completed!")
        elif s.hint:
            help_text.update("Type A, B, C, or D to answer | Type 'toggle' to expand/collapse hint")
        else:
            help_text.update("Type A, B, C, or D to answer | Type /hint for a hint")
