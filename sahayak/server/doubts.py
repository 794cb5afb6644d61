"""Doubt collection window and batch summarization.

The operator opens a window; the learner's submissions are collected until
the window goes quiet for `interval_ms` (a sliding debounce, capped by
`max_lifetime_ms` after opening) or the operator forces processing. The batch
is then summarized into at most three ranked doubts, by the Summarizer when
it works and by local prefix grouping when it does not.

Only one timer is ever alive. Every arm cancels the previous timer first, and
a timer that fires checks it still belongs to the current window, so a stale
timer can never flush a newer window.
"""
import asyncio
import logging
from collections import OrderedDict
from typing import Callable, List, Optional, Sequence

from .codec import DOUBT, Envelope
from .connection import ConnectionManager
from .errors import DoubtWindowClosed, GenerationBusy, NotConnected
from .events import DOUBTS_CHANGED, EventBus
from .generation import Summarizer
from .quiz_types import DoubtItem, DoubtSummary, DoubtWindow, now_ms

logger = logging.getLogger("sahayak.doubts")

PREFIX_LEN = 30
SUMMARY_LEN = 50
TOP_N = 3


def fallback_summaries(doubts: Sequence[DoubtItem], top: int = TOP_N) -> List[DoubtSummary]:
    """Group doubts by their lowercased leading characters and rank by count."""
    groups: "OrderedDict[str, list]" = OrderedDict()
    for d in doubts:
        key = d.text[:PREFIX_LEN].lower()
        if key not in groups:
            groups[key] = [d.text, 0]
        groups[key][1] += 1

    # sorted() is stable: equal counts keep first-seen order
    ranked = sorted(groups.values(), key=lambda g: g[1], reverse=True)[:top]
    return [
        DoubtSummary(
            summary=text[:SUMMARY_LEN] + ("..." if len(text) > SUMMARY_LEN else ""),
            count=count,
            details=text,
        )
        for text, count in ranked
    ]


class DoubtAggregator:
    def __init__(
        self,
        connection: ConnectionManager,
        events: EventBus,
        summarizer: Optional[Summarizer] = None,
        interval_ms: int = 120_000,
        max_lifetime_ms: Optional[int] = None,
        clock: Callable[[], int] = now_ms,
        notice: Optional[Callable[[str], None]] = None,
    ):
        self.connection = connection
        self.events = events
        self.summarizer = summarizer
        self.interval_ms = interval_ms
        self.max_lifetime_ms = max_lifetime_ms
        self.clock = clock
        self.notice = notice or (lambda text: logger.info(f"[doubts] {text}"))

        self.window = DoubtWindow()
        self.top_doubts: List[DoubtSummary] = []
        self.processing = False
        self._timer: Optional[asyncio.Task] = None
        self._timed_flush: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ---------- Operator actions ----------

    async def open_window(self) -> None:
        if not self.connection.state.is_connected:
            raise NotConnected()
        if self.processing:
            raise GenerationBusy("Still processing the previous doubts, please wait...")

        self._cancel_timer()
        self._generation += 1
        now = self.clock()
        self.window = DoubtWindow(active=True, collected=[], opened_at=now)
        self.top_doubts = []

        await self.connection.send(Envelope(DOUBT, {"active": True}))
        self._arm(now)
        logger.debug(f"[doubts] window {self._generation} opened, deadline={self.window.deadline}")
        self.events.publish(DOUBTS_CHANGED, self)

    async def force_process(self) -> List[DoubtSummary]:
        self._cancel_timer()
        return await self.flush()

    def close_results(self) -> None:
        self.top_doubts = []
        self.events.publish(DOUBTS_CHANGED, self)

    # ---------- Learner submissions ----------

    def submit(self, text: str, timestamp: Optional[int] = None) -> DoubtItem:
        if not self.window.active:
            raise DoubtWindowClosed()
        item = DoubtItem(text=text, timestamp=int(timestamp) if timestamp else self.clock())
        self.window.collected.append(item)
        self._arm(self.clock())
        logger.debug(f"[doubts] collected #{len(self.window.collected)}, deadline={self.window.deadline}")
        self.events.publish(DOUBTS_CHANGED, self)
        return item

    # ---------- Processing ----------

    async def flush(self) -> List[DoubtSummary]:
        """Close the window and summarize whatever was collected.

        `processing` is raised before the first await, so `open_window` cannot
        start a new window until these summaries are stored.
        """
        if not self.window.active:
            # already flushed (or never opened); nothing new to process
            return list(self.top_doubts)
        self.window.active = False
        self.window.deadline = None
        items = list(self.window.collected)

        if not items:
            await self.connection.send(Envelope(DOUBT, {"active": False}))
            self.notice("No doubts received from learners")
            self.events.publish(DOUBTS_CHANGED, self)
            return []

        self.processing = True
        try:
            await self.connection.send(Envelope(DOUBT, {"active": False}))
            self.events.publish(DOUBTS_CHANGED, self)
            self.notice(f"Processing {len(items)} doubt(s)...")
            try:
                if self.summarizer is None:
                    raise RuntimeError("no summarizer configured")
                summaries = list(await self.summarizer.summarize(items))[:TOP_N]
            except Exception as e:
                logger.info(f"[doubts] summarizer unavailable, grouping locally: {e}")
                summaries = fallback_summaries(items)
        finally:
            self.processing = False

        self.top_doubts = summaries
        self.notice(f"Top {len(summaries)} critical doubts identified")
        self.events.publish(DOUBTS_CHANGED, self)
        return summaries

    # ---------- Timer ----------

    def _arm(self, now: int) -> None:
        self._cancel_timer()
        delay = self.interval_ms
        if self.max_lifetime_ms is not None and self.window.opened_at is not None:
            cap = self.window.opened_at + self.max_lifetime_ms
            delay = max(0, min(delay, cap - now))
        self.window.deadline = now + delay
        self._timer = asyncio.get_running_loop().create_task(self._expire(self._generation, delay / 1000.0))

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    async def _expire(self, generation: int, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        if generation != self._generation or not self.window.active:
            return
        # from here on this task is a flush, not a pending timer
        self._timer = None
        self._timed_flush = asyncio.current_task()
        logger.debug(f"[doubts] window {generation} timed out")
        try:
            await self.flush()
        finally:
            if self._timed_flush is asyncio.current_task():
                self._timed_flush = None

    def shutdown(self) -> None:
        self._cancel_timer()
        flush, self._timed_flush = self._timed_flush, None
        if flush is not None and not flush.done():
            flush.cancel()
