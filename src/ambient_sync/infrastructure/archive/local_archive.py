"""
Local Flat-File Archive
=======================

Every upstream fetch is kept on disk as a window file named
`{from_epoch}_{to_epoch}` covering readings in (from_epoch, to_epoch]:

    {root}/imperial/{from}_{to}.json          raw station records (JSON array)
    {root}/imperial-jsonl/{from}_{to}.jsonl   same records, one per line
    {root}/metric-jsonl/{from}_{to}.jsonl     converted records, one per line

The line-delimited files are derivatives and are (re)built on demand from
the raw file. Raw files written by hand as NDJSON are accepted too.

Usage:
    from ambient_sync.infrastructure.archive import LocalArchive

    archive = LocalArchive(settings.DATA_DIR)
    readings, files = archive.load_range(start_ms, end_ms)
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ...core.config import IMPERIAL, METRIC
from ...core.exceptions import ArchiveError
from ...domain.conversions import convert_to_metric
from ...domain.readings import ImperialReading, MetricReading, Reading, sort_and_dedupe

logger = logging.getLogger(__name__)

WINDOW_NAME = re.compile(r"^(?:backfill_)?(\d+)_(\d+)$")


@dataclass(frozen=True)
class ArchiveWindow:
    """One archived fetch covering (from_epoch, to_epoch]."""
    name: str
    from_epoch: int
    to_epoch: int

    def overlaps(self, start: int, end: int) -> bool:
        return self.from_epoch < end and self.to_epoch > start


class LocalArchive:
    """Directory of window files, one subdirectory per representation."""

    RAW_DIR = "imperial"
    IMPERIAL_JSONL_DIR = "imperial-jsonl"
    METRIC_JSONL_DIR = "metric-jsonl"

    def __init__(self, root: Path):
        self.root = Path(root)

    @property
    def raw_dir(self) -> Path:
        return self.root / self.RAW_DIR

    def jsonl_dir(self, category: str) -> Path:
        if category == IMPERIAL:
            return self.root / self.IMPERIAL_JSONL_DIR
        if category == METRIC:
            return self.root / self.METRIC_JSONL_DIR
        raise ValueError(f"Unknown category: {category}")

    # =================================================================
    # WINDOWS
    # =================================================================

    def windows(self) -> List[ArchiveWindow]:
        """Raw windows on disk, oldest first. Unparseable names are skipped."""
        if not self.raw_dir.is_dir():
            return []

        found = []
        for path in self.raw_dir.glob("*.json"):
            match = WINDOW_NAME.match(path.stem)
            if not match:
                logger.warning(f"⚠️ Skipping archive file with unexpected name: {path.name}")
                continue
            from_epoch, to_epoch = int(match.group(1)), int(match.group(2))
            if to_epoch <= from_epoch:
                logger.warning(f"⚠️ Skipping archive file with empty window: {path.name}")
                continue
            found.append(ArchiveWindow(path.stem, from_epoch, to_epoch))

        return sorted(found, key=lambda w: (w.from_epoch, w.to_epoch))

    def latest_fetch_epoch(self) -> Optional[int]:
        """End of the most recent archived fetch, or None for an empty archive."""
        windows = self.windows()
        return max(w.to_epoch for w in windows) if windows else None

    def contiguous_coverage(self, start: int) -> Optional[int]:
        """
        How far the archive covers (start, x] without holes.

        A window whose raw file cannot be read counts as a hole.

        Returns:
            x, or None when no readable window covers the instant right after start
        """
        covered = start
        for window in self.windows():
            if not window.from_epoch <= covered < window.to_epoch:
                continue
            try:
                self.load_raw(window)
            except ArchiveError as e:
                logger.warning(f"⚠️ Unreadable window {window.name} does not count as coverage: {e.message}")
                continue
            covered = window.to_epoch
        return covered if covered > start else None

    # =================================================================
    # READ / WRITE
    # =================================================================

    def _read_documents(self, path: Path) -> List[Dict[str, Any]]:
        """Parse a JSON array or newline-delimited JSON file."""
        try:
            text = path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ArchiveError(str(path), str(e)) from e

        if not text:
            return []

        try:
            if text.startswith("["):
                documents = json.loads(text)
            else:
                documents = [json.loads(line) for line in text.splitlines() if line.strip()]
        except json.JSONDecodeError as e:
            raise ArchiveError(str(path), f"invalid JSON: {e}") from e

        if not isinstance(documents, list) or not all(isinstance(d, dict) for d in documents):
            raise ArchiveError(str(path), "expected a list of objects")
        return documents

    def load_raw(self, window: ArchiveWindow) -> List[ImperialReading]:
        """Station records of one window, ascending by dateutc."""
        path = self.raw_dir / f"{window.name}.json"
        try:
            readings = [ImperialReading.from_document(d) for d in self._read_documents(path)]
        except ValidationError as e:
            raise ArchiveError(str(path), f"invalid reading: {e.errors()[0]['msg']}") from e
        return sort_and_dedupe(readings)

    def write_raw(self, from_epoch: int, to_epoch: int, readings: List[ImperialReading]) -> ArchiveWindow:
        """Persist a fetched window and build its derivatives."""
        window = ArchiveWindow(f"{from_epoch}_{to_epoch}", from_epoch, to_epoch)
        path = self.raw_dir / f"{window.name}.json"
        try:
            self.raw_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps([r.to_document() for r in readings]), encoding="utf-8")
        except OSError as e:
            raise ArchiveError(str(path), str(e)) from e

        logger.info(f"💾 Archived {len(readings)} readings to {path}")
        self.ensure_converted(window, readings)
        return window

    def _write_jsonl(self, path: Path, readings: List[Reading]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(
                "\n".join(json.dumps(r.to_document()) for r in readings),
                encoding="utf-8"
            )
        except OSError as e:
            raise ArchiveError(str(path), str(e)) from e

    def ensure_converted(
        self,
        window: ArchiveWindow,
        readings: Optional[List[ImperialReading]] = None
    ) -> bool:
        """
        Build the missing line-delimited derivatives of a raw window.

        Returns:
            True if at least one derivative was written
        """
        imperial_path = self.jsonl_dir(IMPERIAL) / f"{window.name}.jsonl"
        metric_path = self.jsonl_dir(METRIC) / f"{window.name}.jsonl"
        if imperial_path.exists() and metric_path.exists():
            return False

        if readings is None:
            readings = self.load_raw(window)

        if not imperial_path.exists():
            logger.info(f"🔄 Converting {window.name} to imperial JSONL")
            self._write_jsonl(imperial_path, readings)
        if not metric_path.exists():
            logger.info(f"🔄 Converting {window.name} to metric JSONL")
            self._write_jsonl(metric_path, [convert_to_metric(r) for r in readings])
        return True

    def load_category(self, window: ArchiveWindow, category: str) -> List[Reading]:
        """Readings of one window in one representation."""
        self.ensure_converted(window)
        path = self.jsonl_dir(category) / f"{window.name}.jsonl"
        model = ImperialReading if category == IMPERIAL else MetricReading
        try:
            readings = [model.from_document(d) for d in self._read_documents(path)]
        except ValidationError as e:
            raise ArchiveError(str(path), f"invalid reading: {e.errors()[0]['msg']}") from e
        return sort_and_dedupe(readings)

    def load_range(
        self,
        start: int,
        end: int,
        inclusive_end: bool = False
    ) -> Tuple[List[ImperialReading], int]:
        """
        Readings with start < dateutc < end (<= end when inclusive_end).

        Every overlapping window is converted on the way. Unreadable files
        are logged and skipped.

        Returns:
            (readings ascending by dateutc, number of files that contributed)
        """
        collected: List[ImperialReading] = []
        files_used = 0

        for window in self.windows():
            if not window.overlaps(start, end):
                continue
            try:
                readings = self.load_raw(window)
            except ArchiveError as e:
                logger.warning(f"⚠️ {e.message}")
                continue
            try:
                self.ensure_converted(window, readings)
            except ArchiveError as e:
                logger.warning(f"⚠️ Could not convert {window.name}: {e.message}")

            in_range = [
                r for r in readings
                if start < r.dateutc and (r.dateutc <= end if inclusive_end else r.dateutc < end)
            ]
            if in_range:
                files_used += 1
                collected.extend(in_range)

        logger.info(f"📂 Loaded {len(collected)} archived readings from {files_used} file(s)")
        return sort_and_dedupe(collected), files_used
