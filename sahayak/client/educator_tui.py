"""Educator console: hosts the WebSocket server and renders the session."""
import logging

import uvicorn
from rich.markup import escape
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Input, Static

from ..config import Settings
from ..server.app import create_app
from ..server.doubts import DoubtAggregator
from ..server.events import (
    DOUBTS_CHANGED, GENERATING_CHANGED, MESSAGE_ADDED, STATS_CHANGED, STATUS_CHANGED,
)
from ..server.quiz_types import ChatEntry, SessionStatus, StatisticsSnapshot
from ..server.session import EducatorSession
from .plot_widgets import OptionDistributionPlot
from .utils import local_ip, relative_time
from .widgets.chat import RichLogChat

logger = logging.getLogger("sahayak.client.educator")

HELP = (
    "Enter to send | /quiz [topic] for quiz | /doubt to collect doubts | /process to summarize now | "
    "/endquiz | 'close stats' | 'close doubts'"
)


class EducatorTUI(App):
    """Educator side of the classroom session."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #header {
        height: 1;
        background: blue;
        color: white;
        padding: 0 1;
    }

    #generating {
        height: 1;
        color: cyan;
        padding: 0 1;
    }

    #panels {
        height: auto;
        max-height: 50%;
    }

    #stats, #doubts {
        width: 1fr;
        height: auto;
        border: round green;
        padding: 0 1;
    }

    #doubts {
        border: round magenta;
    }

    #plot {
        height: 12;
    }

    #help {
        height: auto;
        color: $text-muted;
        padding: 0 1;
    }
    """

    def __init__(self, settings: Settings, session: EducatorSession | None = None):
        super().__init__()
        self.settings = settings
        self.session = session or EducatorSession(settings)
        self.server: uvicorn.Server | None = None
        self._ip = local_ip()

    def compose(self) -> ComposeResult:
        yield Static("", id="header")
        chat = RichLogChat(id="chat")
        chat.peer_name = "Learner"
        yield chat
        yield Static("", id="generating")
        with Horizontal(id="panels"):
            with Vertical(id="stats"):
                yield Static("", id="stats-text")
                yield OptionDistributionPlot(id="plot")
            yield Static("", id="doubts")
        yield Input(placeholder="Send message...", id="input")
        yield Static(HELP, id="help")
        yield Footer()

    async def on_mount(self) -> None:
        events = self.session.events
        events.subscribe(STATUS_CHANGED, lambda status: self._render_header())
        events.subscribe(MESSAGE_ADDED, self._on_message)
        events.subscribe(STATS_CHANGED, lambda stats: self._render_stats())
        events.subscribe(DOUBTS_CHANGED, lambda agg: self._render_doubts())
        events.subscribe(GENERATING_CHANGED, self._on_generating)

        self._render_header()
        self._render_stats()
        self._render_doubts()
        self._on_generating(False)
        # keep "started N seconds ago" and the doubt countdown fresh
        self.set_interval(1.0, self._tick)

        config = uvicorn.Config(
            create_app(self.session),
            host=self.settings.host,
            port=self.settings.port,
            log_config=None,
            log_level="info",
        )
        self.server = uvicorn.Server(config)
        logger.info(f"serving learner endpoint on {self.settings.host}:{self.settings.port}")
        self.run_worker(self.server.serve(), name="server", group="system")
        self.session.add_system("Sahayak - Educator Mode | Waiting for learner connection...")
        self.query_one("#input", Input).focus()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value
        event.input.value = ""
        # quiz generation can take a while; keep the console responsive
        self.run_worker(self.session.handle_input(value), group="input")

    async def on_unmount(self) -> None:
        if self.server is not None:
            self.server.should_exit = True
        await self.session.shutdown()

    # ---------- Rendering ----------

    def _on_message(self, entry: ChatEntry) -> None:
        self.query_one("#chat", RichLogChat).append_entry(entry)

    def _on_generating(self, generating: bool) -> None:
        w = self.query_one("#generating", Static)
        w.update("Generating quiz..." if generating else "")
        w.display = generating

    def _render_header(self) -> None:
        status = self.session.status
        color = {SessionStatus.CONNECTED: "green", SessionStatus.ERROR: "red"}.get(status, "yellow")
        self.query_one("#header", Static).update(
            f"Sahayak - Educator Mode | Server: {self._ip}:{self.settings.port} | Status: [{color}]{status.value}[/]"
        )

    def _render_stats(self) -> None:
        panel = self.query_one("#stats")
        panel.display = self.session.show_statistics
        if not self.session.show_statistics:
            return
        stats: StatisticsSnapshot = self.session.quizzes.statistics()
        quiz = self.session.quizzes.quiz
        lines = ["[b green]CLASS STATISTICS[/]  (type 'close stats' to close)"]
        if quiz is not None:
            lines.append(f"Q: {escape(quiz.question)}  (sent {relative_time(quiz.start_time, self.session.clock())})")
        lines += [
            f"Total Students Answered: {stats.total_answered}",
            f"Class Average: {stats.average_score}%",
            f"Average Response Time: {stats.avg_response_time_s}s",
            f"Hints Used: {stats.hints_used}",
        ]
        self.query_one("#stats-text", Static).update("\n".join(lines))
        self.query_one("#plot", OptionDistributionPlot).set_distribution(stats.option_distribution)

    def _render_doubts(self) -> None:
        agg: DoubtAggregator = self.session.doubts
        panel = self.query_one("#doubts", Static)
        if agg.processing:
            panel.display = True
            panel.update(
                "[b magenta]PROCESSING DOUBTS[/]\n"
                "Filtering and summarizing doubts...\n"
                "[dim]AI is analyzing and identifying the top 3 critical doubts[/]"
            )
        elif agg.window.active:
            panel.display = True
            remaining = ""
            if agg.window.deadline is not None:
                secs = max(0, (agg.window.deadline - self.session.clock()) // 1000)
                remaining = f" (closes in {secs}s, /process to summarize now)"
            panel.update(f"[b magenta]COLLECTING DOUBTS[/]\n{len(agg.window.collected)} received{remaining}")
        elif agg.top_doubts:
            panel.display = True
            lines = [f"[b magenta]TOP {len(agg.top_doubts)} CRITICAL DOUBTS[/]  (type 'close doubts' to close)"]
            for i, d in enumerate(agg.top_doubts, start=1):
                lines.append(f"[b]{i}. {escape(d.summary)}[/] ({d.count} student{'s' if d.count != 1 else ''})")
                if d.details:
                    lines.append(f"   {escape(d.details)}")
            panel.update("\n".join(lines))
        else:
            panel.display = False

    def _tick(self) -> None:
        if self.session.show_statistics:
            self._render_stats()
        if self.session.doubts.window.active:
            self._render_doubts()
