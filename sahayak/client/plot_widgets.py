from textual_plotext import PlotextPlot
from textual.reactive import reactive

from ..server.quiz_types import LABELS


class OptionDistributionPlot(PlotextPlot):
    """How many answers picked each of A-D for the current quiz."""

    counts: reactive[tuple] = reactive(tuple, init=False)
    _redraw_queued = False

    def on_mount(self) -> None:
        self.counts = (0,) * len(LABELS)
        self.queue_redraw()

    def on_resize(self) -> None:
        self.queue_redraw()

    def set_distribution(self, distribution: dict[str, int]) -> None:
        """Takes `StatisticsSnapshot.option_distribution`."""
        self.counts = tuple(int(distribution.get(label, 0)) for label in LABELS)

    def watch_counts(self) -> None:
        self.queue_redraw()

    def queue_redraw(self) -> None:
        # several updates in one frame collapse into one redraw after layout
        if not self._redraw_queued:
            self._redraw_queued = True
            self.call_after_refresh(self._redraw)

    def _redraw(self) -> None:
        self._redraw_queued = False
        plt = self.plt
        plt.clear_data()
        plt.title("Answers by option")
        plt.xlabel("Option")
        plt.ylabel("Learners")
        if any(self.counts):
            plt.bar(list(LABELS), list(self.counts))
            plt.ylim(0, max(self.counts) + 1)
        self.refresh()
