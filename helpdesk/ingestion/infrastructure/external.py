"""
Ingestion External Integrations
===============================

- YAML rules file with watchdog hot reload
- APScheduler job driving the ingestion cycle
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from helpdesk.config import Settings
from helpdesk.core import ConfigurationException
from helpdesk.ingestion.application import IRulesProvider
from helpdesk.ingestion.domain import IngestionRules
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

RULE_KEYS = ("allowed_domains", "resolution_keywords", "excluded_senders", "assignment_subject_marker")


class RulesFileHandler(FileSystemEventHandler):
    """Watchdog event handler for rules file changes."""

    def __init__(self, manager: "IngestionRulesManager", rules_path: Path):
        self.manager = manager
        self.rules_path = rules_path
        super().__init__()

    def _is_rules_file(self, path) -> bool:
        return Path(path).resolve() == self.rules_path.resolve()

    def on_modified(self, event):
        if not event.is_directory and self._is_rules_file(event.src_path):
            logger.info("Rules file changed", extra={"path": str(event.src_path)})
            self.manager.reload()

    def on_created(self, event):
        self.on_modified(event)

    def on_moved(self, event):
        # Editors that save through a temp file and rename
        if not event.is_directory and self._is_rules_file(event.dest_path):
            logger.info("Rules file replaced", extra={"path": str(event.dest_path)})
            self.manager.reload()


class IngestionRulesManager(IRulesProvider):
    """
    Thread-safe ingestion rules with hot reload.

    Defaults come from the settings; the YAML file, when present, overrides
    any of `allowed_domains`, `resolution_keywords`, `excluded_senders` and
    `assignment_subject_marker`. A broken file on reload keeps the previous
    rules.
    """

    def __init__(self, defaults: IngestionRules):
        self._defaults = defaults
        self._rules = defaults
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestionRulesManager":
        return cls(IngestionRules(
            allowed_domains=settings.allowed_reporter_domains,
            resolution_keywords=settings.resolution_keywords,
            excluded_senders=settings.excluded_senders,
            assignment_subject_marker=settings.assignment_subject_marker,
        ))

    def load(self, path: Path) -> IngestionRules:
        """
        Initial load.

        Raises:
            ConfigurationException: the file exists but is not valid
        """
        self._path = Path(path)
        rules = self._load_from_file(self._path)
        with self._lock:
            self._rules = rules
        return rules

    def _load_from_file(self, path: Path) -> IngestionRules:
        if not path.exists():
            logger.info("Rules file not found, using settings", extra={"path": str(path)})
            return self._defaults

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationException(f"Cannot read rules file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationException(f"Rules file {path} must contain a mapping")

        unknown = sorted(set(data) - set(RULE_KEYS))
        if unknown:
            logger.warning("Ignoring unknown rule keys", extra={"keys": unknown, "path": str(path)})

        merged = self._defaults.model_dump()
        merged.update({key: data[key] for key in RULE_KEYS if key in data})
        try:
            return IngestionRules(**merged)
        except ValidationError as e:
            raise ConfigurationException(f"Invalid rules file {path}: {e}") from e

    def reload(self) -> bool:
        """Reload rules from file."""
        if self._path is None:
            return False

        try:
            rules = self._load_from_file(self._path)
        except ConfigurationException as e:
            logger.error("Failed to reload ingestion rules", extra={"error": e.message})
            return False

        with self._lock:
            self._rules = rules
        logger.info(
            "Ingestion rules reloaded",
            extra={"allowed_domains": rules.allowed_domains, "keywords": rules.resolution_keywords}
        )
        return True

    def start_watching(self) -> None:
        """Start watching the rules file; a missing file is not watched."""
        if self._path is None:
            raise RuntimeError("Rules not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "Rules file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = RulesFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent.resolve()), recursive=False)
            self._observer.start()
            logger.info("Started watching rules file", extra={"path": str(self._path)})
        except OSError as e:
            # inotify is unavailable in some containers
            logger.warning("File watching not available, using static rules", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    @property
    def rules(self) -> IngestionRules:
        with self._lock:
            return self._rules

    def get_rules(self) -> IngestionRules:
        return self.rules


class IngestionScheduler:
    """
    Wrapper for APScheduler running the ingestion cycle on an interval.

    The first run fires immediately; overlapping runs are never started
    and missed runs collapse into one.
    """

    JOB_ID = "mail_ingestion"

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("Ingestion scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="Mail Ingestion Job",
            next_run_time=datetime.now(),
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "Ingestion scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler without waiting for a running cycle."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Ingestion scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
