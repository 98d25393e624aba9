"""
JSON file progress store.

Persists every item and the stats rollup into a single JSON document
(see ``records.build_document``).

Corrupt records are skipped with a warning; write failures are logged and the
in-memory state stays authoritative.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .memory_store import InMemoryProgressStore
from .records import build_document, parse_document

logger = logging.getLogger(__name__)


class JsonFileProgressStore(InMemoryProgressStore):
    """
    Progress store backed by a JSON file on local disk.

    The whole document is loaded once on construction and rewritten
    atomically after every change, under the store lock.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._load()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read progress file {self.path}: {e}")
            return {}
        if not isinstance(doc, dict):
            logger.warning(f"Ignoring progress file {self.path}: top level is not an object")
            return {}
        return doc

    def _load(self) -> None:
        parsed = parse_document(self._read_document())
        for progress in parsed.items:
            self._items[progress.key] = progress
        if parsed.stats is not None:
            self._stats = parsed.stats

        if parsed.items or parsed.skipped:
            logger.info(
                f"Loaded {len(parsed.items)} progress records from {self.path} "
                f"({parsed.skipped} skipped)"
            )

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _document(self) -> dict[str, Any]:
        return build_document(list(self._items.values()), self._stats)

    def _on_change(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".progress-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(self._document(), fh, indent=2)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.warning(f"Failed to write progress file {self.path}: {e}")
