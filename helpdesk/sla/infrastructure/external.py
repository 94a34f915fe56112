"""
SLA External Integrations
==========================

Process-level collaborators of the SLA module:
- YAML business-calendar config with watchdog hot reload
- APScheduler wrapper for the background escalation sweep
"""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from helpdesk.config import settings
from helpdesk.core import ConfigurationException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.domain import BusinessCalendar, CalendarConfig, SLACycleManager

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for calendar config file changes."""

    def __init__(self, config_manager: "CalendarConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info(f"Calendar config file changed: {event.src_path}")
            self.config_manager.reload()


class CalendarConfigManager:
    """
    Thread-safe business calendar configuration with hot-reload support.

    Core operations only read the current calendar; the watchdog thread
    is the only writer. A file that fails validation on reload is
    rejected and the previous calendar stays in effect.
    """

    def __init__(self):
        self._config: Optional[CalendarConfig] = None
        self._calendar: Optional[BusinessCalendar] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> CalendarConfig:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: the file exists but is malformed
        """
        self._path = Path(path)
        config, calendar = self._load_from_file(self._path)
        with self._lock:
            self._config = config
            self._calendar = calendar
        return config

    def _load_from_file(self, path: Path):
        """Load, validate and build the calendar for `path`."""
        if not path.exists():
            logger.warning(f"Calendar config file not found: {path}, using defaults")
            config = CalendarConfig()
        else:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            try:
                config = CalendarConfig(**data)
            except ValidationError as e:
                raise ConfigurationException(
                    f"Invalid business calendar config: {path}",
                    details={"errors": e.errors(include_url=False)},
                ) from e

        return config, BusinessCalendar.from_config(config)

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            config, calendar = self._load_from_file(self._path)
        except (ConfigurationException, yaml.YAMLError, OSError) as e:
            logger.error(f"Failed to reload calendar config: {e}")
            return False

        with self._lock:
            self._config = config
            self._calendar = calendar
        logger.info("Calendar configuration reloaded successfully")
        return True

    def start_watching(self) -> None:
        """
        Start watching the configuration file for changes.

        Skipped when the file does not exist or inotify is unavailable.
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                f"Config file doesn't exist, skipping file watch: {self._path}. "
                "Using default business calendar."
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(
                handler,
                str(self._path.resolve().parent),
                recursive=False
            )
            self._observer.start()
            logger.info(f"Started watching config file: {self._path}")
        except (OSError, FileNotFoundError) as e:
            logger.warning(
                f"File watching not available, using static config: {e}"
            )
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def _ensure_loaded(self) -> None:
        if self._config is None:
            self.load(self._path or settings.sla_config_path)

    @property
    def config(self) -> CalendarConfig:
        """Current configuration (loaded from settings on first use)."""
        self._ensure_loaded()
        with self._lock:
            return self._config

    @property
    def calendar(self) -> BusinessCalendar:
        self._ensure_loaded()
        with self._lock:
            return self._calendar

    def cycle_manager(self) -> SLACycleManager:
        """Cycle manager bound to the current calendar snapshot."""
        self._ensure_loaded()
        with self._lock:
            return SLACycleManager(self._calendar, self._config.dashboard)


class SLAScheduler:
    """
    Runs the escalation sweep every `interval_seconds` on the event loop.

    The first sweep runs right after start so alerts raised while the
    service was down go out without waiting a full interval.
    """

    JOB_ID = "sla_escalation"

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def start(self, sweep) -> None:
        if self.is_running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            sweep,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="SLA escalation sweep",
            next_run_time=datetime.now(timezone.utc),
            coalesce=True,
            misfire_grace_time=60,
            max_instances=1,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("SLA scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running


# Process-wide calendar configuration
calendar_manager = CalendarConfigManager()
