from __future__ import annotations

import logging
import threading
from pathlib import Path

from rad_assist.audio_cues import AudioCuePlayer
from rad_assist.clipboard import MacClipboard
from rad_assist.config import AppConfig, ConfigStore
from rad_assist.hotkey import HotkeyListener
from rad_assist.keyboard import QuartzKeyboard
from rad_assist.oracle import Oracle
from rad_assist.orchestrator import Orchestrator
from rad_assist.ports import Automation, Presenter
from rad_assist.single_instance import InstanceLock
from rad_assist.study_log import StudyOutcomeStore

LOG_DIR = Path.home() / "Library" / "Logs" / "RadAssist"
LOG_FILE = LOG_DIR / "rad_assist.log"

LOGGER = logging.getLogger(__name__)


def configure_logging(log_file: Path | None = None, level: int = logging.INFO) -> None:
    """Log to ``log_file`` (default: the per-user log) and stderr.

    Poll and action threads log concurrently, so records carry the thread name.
    """
    log_file = log_file or LOG_FILE
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(threadName)s %(name)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )


def build_orchestrator(
    oracle: Oracle,
    automation: Automation,
    presenter: Presenter,
    config: AppConfig | None = None,
) -> Orchestrator:
    """Wire the macOS adapters around host-supplied scraping and windows."""
    config = config or ConfigStore().load()
    keyboard = QuartzKeyboard(config.external_app_name)
    return Orchestrator(
        config,
        oracle,
        keyboard,
        automation,
        presenter,
        cues=AudioCuePlayer(),
        notifier=StudyOutcomeStore(),
        clipboard=MacClipboard(),
        hotkeys=HotkeyListener(),
    )


def run(
    oracle: Oracle,
    automation: Automation,
    presenter: Presenter,
    stop_event: threading.Event | None = None,
) -> None:
    lock = InstanceLock()
    if not lock.acquire():
        return

    configure_logging()
    orchestrator = build_orchestrator(oracle, automation, presenter)
    stop_event = stop_event or threading.Event()
    orchestrator.start()
    try:
        while not stop_event.wait(1.0):
            pass
    except KeyboardInterrupt:
        LOGGER.info("Interrupted; shutting down")
    finally:
        orchestrator.stop()
        lock.release()


__all__ = ["LOG_FILE", "build_orchestrator", "configure_logging", "run"]
