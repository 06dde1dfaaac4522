from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol

from reportlab.lib.utils import ImageReader

from scp_invoice.core.paths import resource_path

logger = logging.getLogger(__name__)

# Decoration names the composer asks for
TOP = "top"
BOTTOM = "bottom"


class ImageProvider(Protocol):
    def get(self, name: str) -> Optional[ImageReader]:
        """Return the decoration image, or None to skip drawing it."""
        ...


class NoImages:
    """Provider for plain documents without letterhead bands."""

    def get(self, name: str) -> Optional[ImageReader]:
        return None


class FileImageProvider:
    """Load letterhead bands from disk; a missing or unreadable file yields None.

    Paths may be absolute or relative to the resource root. Each name is
    loaded at most once per provider.
    """

    def __init__(self, paths: Mapping[str, Optional[str | Path]]):
        self._paths = dict(paths)
        self._cache: Dict[str, Optional[ImageReader]] = {}

    def get(self, name: str) -> Optional[ImageReader]:
        if name not in self._cache:
            self._cache[name] = self._load(name)
        return self._cache[name]

    def _load(self, name: str) -> Optional[ImageReader]:
        raw = self._paths.get(name)
        if not raw:
            return None
        p = Path(raw)
        if not p.exists():
            p = resource_path(raw)
        if not p.exists():
            logger.warning("Decoration %r not found at %s; skipping", name, raw)
            return None
        try:
            reader = ImageReader(str(p))
            reader.getSize()
        except Exception:
            logger.warning("Decoration %r at %s could not be read; skipping", name, p, exc_info=True)
            return None
        return reader


def letterhead_provider(top: Optional[str], bottom: Optional[str]) -> FileImageProvider:
    return FileImageProvider({TOP: top, BOTTOM: bottom})
