"""
Orchestrator: runs every enabled platform pipeline and merges the results.

Platforms are independent (disjoint record streams and buffers), so each
runs as its own task in a thread pool. Inside a task the pipeline stays
sequential, and each flush uses its own connection and transaction.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from contextvars import copy_context
from pathlib import Path
from typing import Callable

import requests

from order_ingest.clients import PlatformClient
from order_ingest.config import DateSelector, IngestSettings, PlatformConfig
from order_ingest.core.models import ErrorReport, RunSummary, merge_all
from order_ingest.core.rules import RuleConfigLoader, RuleEngine, default_rules
from order_ingest.mapping import OrderMapper
from order_ingest.observability import metrics
from order_ingest.observability.logger import bind_context, get_logger, log_operation, new_run_id

from .flush import FlushCoordinator, FlushSink
from .pagination import PaginationDriver

logger = get_logger(__name__)

DEFAULT_RULES_PATH = Path("config/validation_rules.yaml")


def load_rule_engine(rules_path: str | Path | None = None) -> RuleEngine:
    """Rule engine from a YAML file when one exists, the built-in rules otherwise."""
    path = Path(rules_path) if rules_path else DEFAULT_RULES_PATH
    if path.exists():
        return RuleEngine(RuleConfigLoader(path).load_rules())
    if rules_path:
        logger.warning(f"Validation rules file not found, using built-in rules: {path}")
    return RuleEngine(default_rules())


class Orchestrator:
    """
    Coordinates one import run across platforms.

    Usage:
        orchestrator = Orchestrator(settings, WarehouseSink(pool))
        summary = orchestrator.run()
    """

    def __init__(
        self,
        settings: IngestSettings,
        sink: FlushSink,
        date_selector: DateSelector | None = None,
        rule_engine: RuleEngine | None = None,
        session_factory: Callable[[], requests.Session] | None = None,
        platforms: list[str] | None = None,
    ):
        """
        Args:
            settings: Platform configs and pipeline tuning
            sink: Warehouse writer shared by all platforms
            date_selector: Picks the collection date (built from settings when omitted)
            rule_engine: Record rules (loaded from settings when omitted)
            session_factory: Builds one HTTP session per platform client
            platforms: Restrict the run to these platform names
        """
        self.settings = settings
        self.sink = sink
        self.date_selector = date_selector or DateSelector(settings.cutoff_hour, settings.timezone)
        self.rule_engine = rule_engine or load_rule_engine(settings.validation_rules_path)
        self.session_factory = session_factory or requests.Session

        configs = settings.enabled_platforms()
        if platforms:
            wanted = {name.strip().lower() for name in platforms}
            configs = [config for config in configs if config.name in wanted]
        self.clients: dict[str, PlatformClient] = {
            config.name: self._build_client(config) for config in configs
        }

    def _build_client(self, config: PlatformConfig) -> PlatformClient:
        return PlatformClient(config, session=self.session_factory(), date_selector=self.date_selector)

    def run(self, date: str | None = None) -> RunSummary:
        """
        Import every enabled platform for one collection date.

        Args:
            date: yyyy-MM-dd to collect; resolved with the grace period when omitted

        Returns:
            Merged summary; SKIPPED when no platform is enabled
        """
        if not self.clients:
            logger.warning("No platform enabled, nothing to import")
            return RunSummary.skipped("No platform enabled")

        collection_date = date or self.date_selector.collection_date()
        workers = min(self.settings.max_workers, len(self.clients))

        with bind_context(run_id=new_run_id(), date=collection_date), \
                log_operation("Import run", logger=logger, platforms=list(self.clients)):
            summaries: list[RunSummary] = []
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as executor:
                # Tasks inherit the bound run context
                futures = {
                    executor.submit(copy_context().run, self._run_platform, name, client, collection_date): name
                    for name, client in self.clients.items()
                }
                for future in as_completed(futures):
                    summaries.append(future.result())

            summary = merge_all(summaries)

        logger.info(
            f"Import run finished with status {summary.status.value}",
            extra={
                "date": collection_date,
                "status": summary.status.value,
                "total_records": summary.total_records,
                "api_calls": summary.api_calls,
                "flush_count": summary.flush_count,
                "duration": summary.duration_formatted,
            },
        )
        return summary

    def _run_platform(self, name: str, client: PlatformClient, date: str) -> RunSummary:
        coordinator = FlushCoordinator(
            name, self.sink, OrderMapper(name, self.settings.timezone)
        )
        driver = PaginationDriver(client, coordinator, self.settings.buffer_capacity, self.rule_engine)
        try:
            with bind_context(platform=name), \
                    metrics.track_duration(metrics.platform_run_duration_seconds, platform=name):
                return driver.run(date)
        except Exception as e:
            logger.error(f"{name} pipeline crashed: {e}", extra={"platform": name}, exc_info=True)
            metrics.record_error(name, type(e).__name__, "orchestrator")
            return RunSummary.started().mark_failed(ErrorReport.from_exception(e, name, "platform"))

    def check_platforms(self) -> dict[str, bool]:
        """Availability probe of every enabled platform."""
        return {name: client.is_available() for name, client in self.clients.items()}

    def cancel(self) -> None:
        """Interrupt pending retry waits; drivers then fail their current page."""
        for client in self.clients.values():
            client.cancel()

    def close(self) -> None:
        for client in self.clients.values():
            client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
