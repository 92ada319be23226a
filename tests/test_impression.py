from rad_assist.config import AppConfig
from rad_assist.impression import ImpressionTracker, ScrapeRate, SearchMode


class FakeClock:
    def __init__(self) -> None:
        self.now = 10.0

    def __call__(self) -> float:
        return self.now


class FakePresenter:
    def __init__(self) -> None:
        self.calls = []

    def show_impression_surface(self) -> None:
        self.calls.append("show")

    def hide_impression_surface(self) -> None:
        self.calls.append("hide")

    def update_presentation(self, text) -> None:
        self.calls.append(("text", text))


def _tracker(config: AppConfig | None = None):
    presenter = FakePresenter()
    rates = []
    clock = FakeClock()
    tracker = ImpressionTracker(presenter, config or AppConfig(), rates.append, clock=clock)
    return tracker, presenter, rates, clock


def test_start_switches_to_fast_search() -> None:
    tracker, presenter, rates, _ = _tracker()

    tracker.start()

    assert tracker.mode is SearchMode.FAST
    assert presenter.calls == ["show"]
    assert rates == [ScrapeRate.FAST]


def test_found_waits_for_settle_time() -> None:
    tracker, presenter, rates, clock = _tracker()
    tracker.start()

    clock.now += 1.0
    tracker.on_scrape("No acute findings.", drafted=False)
    assert tracker.mode is SearchMode.FAST

    clock.now += 1.0
    tracker.on_scrape("No acute findings.", drafted=False)

    assert tracker.mode is SearchMode.FOUND
    assert presenter.calls == ["show", ("text", "No acute findings.")]
    assert rates == [ScrapeRate.FAST, ScrapeRate.POST_IMPRESSION]


def test_fast_search_ignores_empty_text() -> None:
    tracker, _, _, clock = _tracker()
    tracker.start()
    clock.now += 5.0

    tracker.on_scrape(None, drafted=True)

    assert tracker.mode is SearchMode.FAST


def test_found_keeps_updating_and_is_not_hidden_when_undrafted() -> None:
    tracker, presenter, _, clock = _tracker()
    tracker.start()
    clock.now += 3.0
    tracker.on_scrape("One.", drafted=False)

    tracker.on_scrape("Two.", drafted=False)

    assert presenter.calls[-1] == ("text", "Two.")
    assert "hide" not in presenter.calls


def test_stop_hides_and_restores_normal_rate() -> None:
    tracker, presenter, rates, _ = _tracker()
    tracker.start()

    tracker.stop()

    assert tracker.mode is SearchMode.IDLE
    assert presenter.calls == ["show", "hide"]
    assert rates == [ScrapeRate.FAST, ScrapeRate.NORMAL]


def test_idle_drafted_study_auto_shows_once() -> None:
    tracker, presenter, rates, _ = _tracker()

    tracker.on_scrape("Impression.", drafted=True)
    tracker.on_scrape("Impression updated.", drafted=True)

    assert presenter.calls == ["show", ("text", "Impression."), ("text", "Impression updated.")]
    assert rates == []


def test_idle_surface_hides_when_no_longer_drafted() -> None:
    tracker, presenter, _, _ = _tracker()
    tracker.on_scrape("Impression.", drafted=True)

    tracker.on_scrape("Impression.", drafted=False)
    tracker.on_scrape("Impression.", drafted=False)

    assert presenter.calls == ["show", ("text", "Impression."), "hide"]


def test_idle_tracking_disabled_without_show_impression() -> None:
    tracker, presenter, _, _ = _tracker(AppConfig(show_impression=False))

    tracker.on_scrape("Impression.", drafted=True)

    assert presenter.calls == []


def test_unknown_drafted_state_keeps_surface() -> None:
    tracker, presenter, _, _ = _tracker()
    tracker.on_scrape("Impression.", drafted=True)

    tracker.on_scrape("Impression.", drafted=None)

    assert presenter.calls == ["show", ("text", "Impression.")]
    assert tracker.surface_visible is True
