"""
Document store collaborators.

The pipeline only needs ``insert(collection, document)``. The bundled
backend appends one JSON document per line to ``<root>/<collection>.jsonl``.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import structlog
from aiofiles import open as aio_open

from ..config import StoreSettings

logger = structlog.get_logger(__name__)


class DocumentStore(Protocol):
    """Write-only document store interface."""

    async def insert(self, collection: str, document: Dict[str, Any]) -> None:
        ...


class JsonLinesDocumentStore:
    """
    Append-only JSON lines store.

    One file per collection; each accepted document is one line. No update
    or delete path exists.
    """

    def __init__(self, root_path: Path) -> None:
        self.root_path = Path(root_path)
        self._ensure_root()
        logger.info("JSON lines store initialized", root_path=str(self.root_path))

    def _ensure_root(self) -> None:
        try:
            self.root_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Error creating store root directory", root_path=str(self.root_path), error=str(e))
            raise

    def collection_path(self, collection: str) -> Path:
        """File backing a collection. Names are restricted to a safe charset."""
        if not re.fullmatch(r"[A-Za-z0-9_-]+", collection):
            raise ValueError(f"Invalid collection name: {collection!r}")
        return self.root_path / f"{collection}.jsonl"

    async def insert(self, collection: str, document: Dict[str, Any]) -> None:
        """Append document to the collection file."""
        line = json.dumps(document, separators=(",", ":"), ensure_ascii=False) + "\n"
        async with aio_open(self.collection_path(collection), "a", encoding="utf-8") as f:
            await f.write(line)

    def read_all(self, collection: str) -> List[Dict[str, Any]]:
        """Load every document of a collection. Intended for tooling and tests."""
        path = self.collection_path(collection)
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


def build_document_store(settings: StoreSettings) -> Optional[DocumentStore]:
    """Create the configured store, or None for degraded (storeless) mode."""
    if settings.backend == "none":
        logger.warning("No document store configured - accepted telemetry will be dropped")
        return None
    return JsonLinesDocumentStore(settings.root_path)
