from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from rad_assist.config import AppConfig
from rad_assist.ports import Presenter

LOGGER = logging.getLogger(__name__)


class SearchMode(str, Enum):
    FAST = "fast"
    FOUND = "found"
    IDLE = "idle"


class ScrapeRate(str, Enum):
    NORMAL = "normal"
    FAST = "fast"
    POST_IMPRESSION = "post_impression"


@dataclass
class ImpressionSearch:
    active: bool = False
    started_at: float = 0.0
    mode: SearchMode = SearchMode.IDLE
    # Shown by process; only sign/discard/new case may hide it.
    pinned: bool = False


class ImpressionTracker:
    """Two-speed search for the generated impression after "process".

    ``rearm`` is called with the scrape rate the poller should switch to.
    """

    def __init__(
        self,
        presenter: Presenter,
        config: AppConfig,
        rearm: Callable[[ScrapeRate], None],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.presenter = presenter
        self.config = config
        self._rearm = rearm
        self._clock = clock
        self.search = ImpressionSearch()
        self.surface_visible = False

    @property
    def mode(self) -> SearchMode:
        return self.search.mode

    def start(self) -> None:
        self.search = ImpressionSearch(active=True, started_at=self._clock(), mode=SearchMode.FAST, pinned=True)
        self.presenter.show_impression_surface()
        self.surface_visible = True
        LOGGER.info("Impression search started (fast scrape)")
        self._rearm(ScrapeRate.FAST)

    def stop(self) -> None:
        was_searching = self.search.mode is not SearchMode.IDLE
        self.search = ImpressionSearch()
        if self.surface_visible:
            self.presenter.hide_impression_surface()
            self.surface_visible = False
        if was_searching:
            LOGGER.info("Impression search stopped")
            self._rearm(ScrapeRate.NORMAL)

    def on_scrape(self, impression: str | None, drafted: bool | None) -> None:
        mode = self.search.mode
        if mode is SearchMode.FAST:
            self._search_fast(impression)
        elif mode is SearchMode.FOUND:
            if impression:
                self.presenter.update_presentation(impression)
        elif self.config.show_impression:
            self._follow_drafted(impression, drafted)

    def _search_fast(self, impression: str | None) -> None:
        if not impression:
            return
        elapsed = self._clock() - self.search.started_at
        if elapsed < self.config.impression_settle_seconds:
            LOGGER.debug("Impression text present but only %.1fs since process; waiting", elapsed)
            return

        self.search.mode = SearchMode.FOUND
        self.presenter.update_presentation(impression)
        LOGGER.info("Impression found after %.1fs", elapsed)
        self._rearm(ScrapeRate.POST_IMPRESSION)

    def _follow_drafted(self, impression: str | None, drafted: bool | None) -> None:
        if drafted is None:
            return
        if drafted and impression:
            if not self.surface_visible:
                LOGGER.info("Drafted study detected; showing impression")
                self.presenter.show_impression_surface()
                self.surface_visible = True
            self.presenter.update_presentation(impression)
        elif not drafted and self.surface_visible and not self.search.pinned:
            self.presenter.hide_impression_surface()
            self.surface_visible = False


__all__ = ["ImpressionSearch", "ImpressionTracker", "ScrapeRate", "SearchMode"]
