"""Atomic publication of rendered metrics text for a scraping collector."""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path


LOGGER = logging.getLogger(__name__)


class MetricsFile:
    """Publish metrics text to a file, replacing it atomically."""

    def __init__(self, path: Path) -> None:
        """Create a publisher targeting the provided file path."""
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Return the published file location."""
        return self._path

    def read(self) -> str | None:
        """Return the currently published text, or None before the first publish."""
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")

    def write(self, text: str) -> bool:
        """Publish the text and return True when the file content changed."""
        payload = text.encode("utf-8")
        if self._path.exists() and self._hash_file(self._path) == hashlib.sha256(payload).hexdigest():
            LOGGER.debug("Metrics at %s unchanged", self._path)
            return False
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        LOGGER.debug("Published %s bytes of metrics to %s", len(payload), self._path)
        return True

    def _hash_file(self, path: Path) -> str:
        digest = hashlib.sha256()
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(8192), b""):
                digest.update(chunk)
        return digest.hexdigest()
