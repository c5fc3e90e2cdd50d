#!/usr/bin/env python3
"""
Progress UI for the Recipe Image Enrichment job
================================================

Line-oriented run reporting: run header, batch headers, one line per recipe,
batch summaries, remaining-work counts and the final statistics.
Uses the rich library for terminal styling; every line is also logged.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from rich.console import Console

from tools.logging_utils import get_logger

logger = get_logger(__name__)

# Long image URLs are cut to this many characters in progress lines
URL_PREVIEW_CHARS = 60


@dataclass
class BatchStats:
    """Counters for one batch."""
    batch_index: int
    selected: int = 0
    updated: int = 0
    failed: int = 0
    placeholders: int = 0
    remaining: Optional[int] = None
    start_time: float = field(default_factory=time.time)

    @property
    def processed(self) -> int:
        return self.updated + self.failed

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def success_rate(self) -> float:
        if self.processed == 0:
            return 0.0
        return self.updated / self.processed


class EnrichmentProgressUI:
    """
    Terminal reporter for image enrichment runs.

    Args:
        use_rich: Style output through a rich Console (plain print otherwise)
        console: Console to write to (tests pass one backed by StringIO)
    """

    def __init__(self, use_rich: bool = True, console: Optional[Console] = None):
        self.use_rich = use_rich
        self.console = (console or Console()) if self.use_rich else None

    def _emit(self, message: str, style: Optional[str] = None, level: str = "info"):
        getattr(logger, level)(message.strip())
        if self.use_rich:
            self.console.print(message, style=style, markup=False, highlight=False)
        else:
            print(message, flush=True)

    # -------------------------------------------------------------------------
    # Run / batch framing
    # -------------------------------------------------------------------------

    def start_run(self, batch_size: int, total_batches: int, dry_run: bool = False):
        """Announce a run."""
        self._emit("🚀 Starting image URL scraping...", style="bold blue")
        self._emit(f"   Batch size: {batch_size} | Max batches: {total_batches}")
        if dry_run:
            self._emit("   Dry run: no images will be written", style="yellow")

    def start_batch(self, batch_index: int, total_batches: int, offset: int, limit: int):
        """Batch header, numbered from 1."""
        self._emit(f"\n========== BATCH {batch_index + 1}/{total_batches} ==========", style="bold")
        self._emit(f"🔍 Fetching recipes (limit: {limit}, offset: {offset})...")

    def batch_selected(self, count: int):
        if count == 0:
            self._emit("✅ No recipes to process in this batch", style="green")
        else:
            self._emit(f"📊 Found {count} recipes to process")

    # -------------------------------------------------------------------------
    # Per-recipe lines
    # -------------------------------------------------------------------------

    def candidate_started(self, position: int, count: int, name: str):
        self._emit(f"\n[{position}/{count}] Processing: {name}")

    def image_saved(self, image_url: str):
        preview = image_url[:URL_PREVIEW_CHARS]
        suffix = "..." if len(image_url) > URL_PREVIEW_CHARS else ""
        self._emit(f"  ✅ Image URL saved: {preview}{suffix}", style="green")

    def image_found_dry_run(self, image_url: str):
        self._emit(f"  🔍 Would save: {image_url[:URL_PREVIEW_CHARS]}", style="cyan")

    def placeholder_set(self):
        self._emit("  🔧 Placeholder set for broken link", style="yellow")

    def broken_link_dry_run(self):
        self._emit("  🔍 Would set placeholder for broken link", style="cyan")

    def no_image(self, reason: Optional[str] = None):
        detail = f" ({reason})" if reason else ""
        self._emit(f"  ❌ No image found{detail}", style="red")

    def write_failed(self, error: str):
        self._emit(f"  ❌ Could not save image: {error}", style="red", level="error")

    # -------------------------------------------------------------------------
    # Summaries
    # -------------------------------------------------------------------------

    def batch_finished(self, stats: BatchStats):
        """Batch summary lines."""
        self._emit("\n📊 Batch Summary:")
        self._emit(f"   Updated: {stats.updated}")
        if stats.placeholders:
            self._emit(f"     (placeholders: {stats.placeholders})")
        self._emit(f"   Failed: {stats.failed}")
        self._emit(f"   Total: {stats.selected}")
        if stats.processed:
            self._emit(f"   Success rate: {stats.success_rate * 100:.1f}%")
        self._emit(f"   Time: {stats.elapsed_time:.1f}s")

    def remaining(self, count: int):
        self._emit(f"\n📊 Remaining recipes without images: {count}")

    def cancelled(self):
        self._emit("\n⚠️  Cancellation requested - stopping", style="yellow", level="warning")

    def final_stats(
        self,
        total: int,
        with_image: int,
        without_image: int,
        updated: int,
        failed: int,
        batches: int,
        stop_reason: str,
    ):
        """Final run report."""
        self._emit("\n🎉 Scraping completed!", style="bold green")
        self._emit(f"   Batches run: {batches} (stopped: {stop_reason})")
        self._emit(f"   Updated this run: {updated}")
        self._emit(f"   Failed this run: {failed}")
        self._emit("\n📊 Final Statistics:")
        self._emit(f"   Total recipes: {total}")
        self._emit(f"   With images: {with_image}")
        self._emit(f"   Without images: {without_image}")
