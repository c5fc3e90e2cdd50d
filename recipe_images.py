#!/usr/bin/env python3
"""
Recipe Image Enrichment
=======================

Fill in the image of every recipe that has none by crawling the recipe's
source page and pulling an image URL out of the HTML.

Per recipe:
1. Fetch the source page (10s timeout, fixed User-Agent, no retries)
2. Run the extraction heuristics (og:image first, first article <img> last)
3. Classify: found / broken_link (404) / not_found (no match or fetch error)
4. Persist: found -> the URL, broken_link -> shared placeholder, not_found -> nothing
5. Wait the pacing interval before the next recipe

Recipes are processed strictly one at a time, in batches. After each batch the
remaining count is re-checked; the run stops when nothing is left or when the
configured number of batches has run. A recipe counts as done once its image
column is non-null, so a fresh run simply starts again at offset 0 and picks
up whatever is still missing (including earlier not_found recipes).

Usage:
    python recipe_images.py
    python recipe_images.py --batch-size 20 --total-batches 3
    python recipe_images.py --db data/recipes.db --dry-run
"""

import argparse
import functools
import signal
import sys
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Literal, Mapping, Optional

from config import (
    DEFAULT_USER_AGENT,
    PLACEHOLDER_IMAGE_URL,
    get_database_path,
    get_image_enrichment_config,
)
from image_extraction import ImageMatch, find_image
from page_fetcher import FetchResult, PageFetcher
from recipe_store import RecipeStore, RecipeStoreError, RecipeStoreWriteError, ImageStats
from tools.logging_utils import get_logger, setup_logging
from tools.progress_ui import BatchStats, EnrichmentProgressUI

# Initialize logger for this module
logger = get_logger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class EnrichmentCandidate:
    """A recipe without an image, read fresh for one processing attempt."""
    id: Any
    display_name: str
    source_url: Optional[str]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "EnrichmentCandidate":
        return cls(
            id=row["id"],
            display_name=row.get("name") or f"recipe {row['id']}",
            source_url=row.get("url"),
        )


@dataclass(frozen=True)
class ExtractionOutcome:
    """
    Result of trying to obtain an image for one recipe.

    kind:
        found:       image_url holds the extracted URL
        broken_link: the source page returned 404
        not_found:   page had no recognisable image, or could not be fetched;
                     reason tells which ('no_match', 'fetch_error',
                     'extraction_error') but both are handled the same way
    """
    kind: Literal['found', 'broken_link', 'not_found']
    image_url: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def found(cls, image_url: str) -> "ExtractionOutcome":
        return cls(kind='found', image_url=image_url)

    @classmethod
    def broken_link(cls) -> "ExtractionOutcome":
        return cls(kind='broken_link')

    @classmethod
    def not_found(cls, reason: str = 'no_match') -> "ExtractionOutcome":
        return cls(kind='not_found', reason=reason)


@dataclass
class RunSummary:
    """Result of one pipeline invocation."""
    batches: int
    updated: int
    failed: int
    stop_reason: Literal['exhausted', 'batch_limit', 'cancelled']
    final_stats: Optional[ImageStats] = None


@dataclass(frozen=True)
class EnrichmentConfig:
    """Tuning knobs for one run (see config.get_image_enrichment_config)."""
    batch_size: int = 50
    total_batches: int = 10
    request_timeout_ms: int = 10000
    pacing_delay_ms: int = 400
    placeholder_image_url: str = PLACEHOLDER_IMAGE_URL
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_dict(cls, settings: Dict[str, Any]) -> "EnrichmentConfig":
        return cls(**{k: settings[k] for k in cls.__dataclass_fields__ if k in settings})


# =============================================================================
# CLASSIFICATION
# =============================================================================

def classify(fetch_result: FetchResult, image_url: Optional[str]) -> ExtractionOutcome:
    """
    Map a fetch result and extraction result to an outcome.

    A 404 is a broken link whatever the body says. Any other fetch failure is
    treated like a page without an image.
    """
    if fetch_result.status == 'not_found':
        return ExtractionOutcome.broken_link()
    if fetch_result.status == 'error':
        return ExtractionOutcome.not_found(reason='fetch_error')
    if image_url:
        return ExtractionOutcome.found(image_url)
    return ExtractionOutcome.not_found(reason='no_match')


# =============================================================================
# SELECTION / PERSISTENCE
# =============================================================================

class CandidateSelector:
    """Read side of the store: recipes whose image is still NULL."""

    def __init__(self, store: RecipeStore):
        self.store = store

    def select_candidates(self, batch_size: int, offset: int = 0) -> List[EnrichmentCandidate]:
        rows = self.store.select_missing_image(batch_size, offset)
        return [EnrichmentCandidate.from_row(row) for row in rows]

    def count_remaining(self) -> int:
        return self.store.count_missing_image()

    def image_stats(self) -> ImageStats:
        return self.store.aggregate_image_stats()


class ImagePersister:
    """
    Write side of the store.

    found writes the URL verbatim, broken_link writes the placeholder and
    not_found writes nothing so the recipe stays eligible for the next run.
    """

    def __init__(self, store: RecipeStore, placeholder_url: str):
        self.store = store
        self.placeholder_url = placeholder_url

    def value_for(self, outcome: ExtractionOutcome) -> Optional[str]:
        """Value that persist() would write for this outcome."""
        if outcome.kind == 'found':
            return outcome.image_url
        if outcome.kind == 'broken_link':
            return self.placeholder_url
        return None

    def persist(self, candidate_id: Any, outcome: ExtractionOutcome) -> Optional[str]:
        """
        Persist one outcome.

        Returns:
            The value written, or None when nothing was written

        Raises:
            RecipeStoreWriteError: If the update fails
        """
        value = self.value_for(outcome)
        if value is None:
            return None
        self.store.update_image(candidate_id, value)
        return value


# =============================================================================
# PACING
# =============================================================================

class PacedScheduler:
    """
    Run tasks one at a time with a fixed pause after each.

    The pause waits on the cancel event, so cancel() interrupts it and no
    further task starts.

    Args:
        pacing_delay_ms: Pause after every task, success or failure
        cancel_event: Shared cancellation flag
        wait: Replacement for cancel_event.wait (seconds -> cancelled?)
    """

    def __init__(
        self,
        pacing_delay_ms: int = 400,
        cancel_event: Optional[threading.Event] = None,
        wait: Optional[Callable[[float], bool]] = None,
    ):
        self.delay = pacing_delay_ms / 1000.0
        self.cancel_event = cancel_event or threading.Event()
        self._wait = wait or self.cancel_event.wait

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def pace(self) -> None:
        if self.delay > 0 and not self.cancelled:
            self._wait(self.delay)

    def run(self, tasks: Iterable[Callable[[], Any]]) -> int:
        """
        Drain the task queue.

        Returns:
            Number of tasks executed
        """
        queue = deque(tasks)
        executed = 0
        while queue and not self.cancelled:
            task = queue.popleft()
            try:
                task()
            finally:
                executed += 1
                self.pace()
        if queue:
            logger.info(f"Scheduler cancelled with {len(queue)} task(s) left")
        return executed


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class ImageEnrichmentPipeline:
    """
    Batch orchestrator.

    States: idle -> running_batch -> evaluating -> (running_batch | stopped)

    All collaborators are injected so tests can replace the store, the
    network and the clock.
    """

    def __init__(
        self,
        selector: CandidateSelector,
        fetcher: PageFetcher,
        persister: ImagePersister,
        config: EnrichmentConfig = EnrichmentConfig(),
        reporter: Optional[EnrichmentProgressUI] = None,
        scheduler: Optional[PacedScheduler] = None,
        extractor: Callable[[Optional[str]], Optional[ImageMatch]] = find_image,
        dry_run: bool = False,
    ):
        self.selector = selector
        self.fetcher = fetcher
        self.persister = persister
        self.config = config
        self.reporter = reporter or EnrichmentProgressUI()
        self.scheduler = scheduler or PacedScheduler(config.pacing_delay_ms)
        self.extractor = extractor
        self.dry_run = dry_run
        self.state = 'idle'

    @property
    def cancelled(self) -> bool:
        return self.scheduler.cancelled

    def cancel(self) -> None:
        """Stop after the current recipe (honoured within one pacing interval)."""
        self.scheduler.cancel()

    # -------------------------------------------------------------------------
    # One recipe
    # -------------------------------------------------------------------------

    def extract_outcome(self, candidate: EnrichmentCandidate, fetch_result: FetchResult) -> ExtractionOutcome:
        """Run the extraction chain on a fetched page and classify the result."""
        if fetch_result.status != 'content':
            if fetch_result.status == 'error':
                logger.info(f"Fetch failed for {candidate.display_name}: {fetch_result.error}")
            return classify(fetch_result, None)

        try:
            match = self.extractor(fetch_result.body)
        except Exception as e:
            logger.warning(f"Extraction failed for {candidate.display_name}: {e}")
            return ExtractionOutcome.not_found(reason='extraction_error')

        if match:
            logger.debug(f"{candidate.display_name}: image from {match.heuristic}")
        return classify(fetch_result, match.url if match else None)

    def process_candidate(
        self,
        candidate: EnrichmentCandidate,
        stats: BatchStats,
        position: int = 1,
        count: int = 1,
    ) -> ExtractionOutcome:
        """Fetch, extract, classify and persist one recipe; update batch counters."""
        self.reporter.candidate_started(position, count, candidate.display_name)

        fetch_result = self.fetcher.fetch(candidate.source_url)
        outcome = self.extract_outcome(candidate, fetch_result)

        if outcome.kind == 'not_found':
            stats.failed += 1
            self.reporter.no_image(outcome.reason)
            return outcome

        if self.dry_run:
            if outcome.kind == 'found':
                self.reporter.image_found_dry_run(outcome.image_url)
            else:
                self.reporter.broken_link_dry_run()
                stats.placeholders += 1
            stats.updated += 1
            return outcome

        try:
            self.persister.persist(candidate.id, outcome)
        except RecipeStoreWriteError as e:
            logger.error(f"Persisting image for recipe {candidate.id} failed: {e}")
            self.reporter.write_failed(str(e))
            stats.failed += 1
            return outcome

        if outcome.kind == 'found':
            self.reporter.image_saved(outcome.image_url)
        else:
            self.reporter.placeholder_set()
            stats.placeholders += 1
        stats.updated += 1
        return outcome

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def run_batch(self, batch_index: int) -> BatchStats:
        """Select and process one batch at offset batch_index * batch_size."""
        batch_size = self.config.batch_size
        offset = batch_index * batch_size
        self.reporter.start_batch(batch_index, self.config.total_batches, offset, batch_size)

        candidates = self.selector.select_candidates(batch_size, offset)
        stats = BatchStats(batch_index=batch_index, selected=len(candidates))
        self.reporter.batch_selected(len(candidates))

        tasks = [
            functools.partial(self.process_candidate, candidate, stats, position, len(candidates))
            for position, candidate in enumerate(candidates, 1)
        ]
        self.scheduler.run(tasks)

        self.reporter.batch_finished(stats)
        return stats

    def run(self) -> RunSummary:
        """
        Run batches until no recipe is missing an image, the batch ceiling is
        reached, or cancel() is called.
        """
        self.state = 'idle'
        self.reporter.start_run(self.config.batch_size, self.config.total_batches, self.dry_run)

        batch_index = 0
        batches_run = 0
        updated = 0
        failed = 0

        while True:
            if self.cancelled:
                stop_reason = 'cancelled'
                break

            self.state = 'running_batch'
            stats = self.run_batch(batch_index)
            batches_run += 1
            updated += stats.updated
            failed += stats.failed

            if self.cancelled:
                stop_reason = 'cancelled'
                break

            self.state = 'evaluating'
            remaining = self.selector.count_remaining()
            stats.remaining = remaining
            self.reporter.remaining(remaining)

            if remaining == 0:
                stop_reason = 'exhausted'
                break
            if batch_index + 1 >= self.config.total_batches:
                stop_reason = 'batch_limit'
                break
            batch_index += 1

        self.state = 'stopped'
        if stop_reason == 'cancelled':
            self.reporter.cancelled()

        final_stats = self.selector.image_stats()
        self.reporter.final_stats(
            total=final_stats.total,
            with_image=final_stats.with_image,
            without_image=final_stats.without_image,
            updated=updated,
            failed=failed,
            batches=batches_run,
            stop_reason=stop_reason,
        )
        logger.info(
            f"Image enrichment finished: batches={batches_run}, updated={updated}, "
            f"failed={failed}, stop_reason={stop_reason}"
        )

        return RunSummary(
            batches=batches_run,
            updated=updated,
            failed=failed,
            stop_reason=stop_reason,
            final_stats=final_stats,
        )


def build_pipeline(
    store: RecipeStore,
    config: EnrichmentConfig,
    fetcher: Optional[PageFetcher] = None,
    reporter: Optional[EnrichmentProgressUI] = None,
    cancel_event: Optional[threading.Event] = None,
    dry_run: bool = False,
) -> ImageEnrichmentPipeline:
    """Wire the default collaborators around a store."""
    return ImageEnrichmentPipeline(
        selector=CandidateSelector(store),
        fetcher=fetcher or PageFetcher(config.request_timeout_ms, config.user_agent),
        persister=ImagePersister(store, config.placeholder_image_url),
        config=config,
        reporter=reporter,
        scheduler=PacedScheduler(config.pacing_delay_ms, cancel_event),
        dry_run=dry_run,
    )


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def _install_signal_handlers(cancel_event: threading.Event) -> Dict[int, Any]:
    """Route SIGINT/SIGTERM to the cancel event; returns the previous handlers."""
    def _handler(signum, frame):
        logger.warning(f"Received signal {signum}, finishing current recipe")
        cancel_event.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    return previous


def _restore_signal_handlers(previous: Dict[int, Any]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Fill in missing recipe images by scraping each recipe's source page")
    parser.add_argument("--batch-size", type=int, default=None,
                        help="Recipes per batch (default from config: 50)")
    parser.add_argument("--total-batches", type=int, default=None,
                        help="Maximum batches this run (default from config: 10)")
    parser.add_argument("--timeout-ms", dest="request_timeout_ms", type=int, default=None,
                        help="Page fetch timeout in milliseconds (default: 10000)")
    parser.add_argument("--delay-ms", dest="pacing_delay_ms", type=int, default=None,
                        help="Pause after every recipe in milliseconds (default: 400)")
    parser.add_argument("--db", metavar="PATH", default=None,
                        help="Recipe SQLite database (default: RECIPE_DB_PATH or data/recipes.db)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Fetch and classify but don't write anything")
    parser.add_argument("--verbose", action="store_true",
                        help="Show debug logging on the console")
    args = parser.parse_args(argv)

    setup_logging(console_level="DEBUG" if args.verbose else None, force=True)

    try:
        settings = get_image_enrichment_config({
            'batch_size': args.batch_size,
            'total_batches': args.total_batches,
            'request_timeout_ms': args.request_timeout_ms,
            'pacing_delay_ms': args.pacing_delay_ms,
        })
    except ValueError as e:
        logger.error(f"❌ Invalid configuration: {e}")
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        return 1

    config = EnrichmentConfig.from_dict(settings)
    db_path = args.db or get_database_path()

    store = None
    try:
        store = RecipeStore(db_path)
        store.check_connection()
        store.ensure_image_column()
    except RecipeStoreError as e:
        if store is not None:
            store.close()
        logger.error(f"❌ Recipe store unavailable: {e}")
        print(f"❌ Recipe store unavailable: {e}", file=sys.stderr)
        return 1

    cancel_event = threading.Event()
    previous_handlers = _install_signal_handlers(cancel_event)
    try:
        with store, PageFetcher(config.request_timeout_ms, config.user_agent) as fetcher:
            pipeline = build_pipeline(store, config, fetcher=fetcher,
                                      cancel_event=cancel_event, dry_run=args.dry_run)
            summary = pipeline.run()
    except RecipeStoreError as e:
        logger.error(f"❌ Recipe store failed mid-run: {e}")
        print(f"❌ Recipe store failed mid-run: {e}", file=sys.stderr)
        return 1
    finally:
        _restore_signal_handlers(previous_handlers)

    return 130 if summary.stop_reason == 'cancelled' else 0


if __name__ == "__main__":
    sys.exit(main())
