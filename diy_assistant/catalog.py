from __future__ import annotations

"""Static fallback catalog used whenever no recommendations can be extracted.

The built-in list can be replaced by a JSON resource file shaped like
``{"materials": [{"name": ...}], "tools": [{"name": ...}]}``.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from .affiliate import attach_affiliate_links
from .config import DEFAULT_AFFILIATE_TAG, DEFAULT_SEARCH_URL
from .models import Recommendations

logger = logging.getLogger("diyassist.catalog")

DEFAULT_MATERIALS = [
    "Drywall Sheets",
    "Joint Compound",
    "Drywall Tape",
    "Primer Paint",
]
DEFAULT_TOOLS = [
    "Drywall Saw",
    "Utility Knife",
    "Drywall Screwdriver",
    "Taping Knife",
]


@dataclass
class CatalogMeta:
    """Metadata describing where the fallback catalog came from."""
    source: str
    updated_at: str
    sha256: str


class FallbackCatalog:
    def __init__(
        self,
        path: Optional[Path] = None,
        affiliate_tag: str = DEFAULT_AFFILIATE_TAG,
        search_url: str = DEFAULT_SEARCH_URL,
    ) -> None:
        """Purpose: Load the fallback catalog once and resolve its affiliate links.
        Inputs/Outputs: Inputs are an optional JSON path and link settings; no return.
        Side Effects / State: Reads the override file when given; caches the result.
        Dependencies: Uses _load_file and attach_affiliate_links.
        Failure Modes: A missing or malformed override file raises at construction so
            a bad deployment fails at startup rather than mid-request.
        Testing Notes: Every item of recommendations() has a non-empty affiliate_url.
        """
        if path is not None:
            base, self.meta = _load_file(path)
        else:
            base = Recommendations.model_validate(
                {
                    "materials": [{"name": name} for name in DEFAULT_MATERIALS],
                    "tools": [{"name": name} for name in DEFAULT_TOOLS],
                }
            )
            self.meta = CatalogMeta(source="builtin", updated_at="", sha256="")
        self._recommendations = attach_affiliate_links(base, affiliate_tag, search_url)
        logger.info(
            "catalog source=%s materials=%d tools=%d sha256=%s",
            self.meta.source,
            len(self._recommendations.materials),
            len(self._recommendations.tools),
            self.meta.sha256[:12],
        )

    def recommendations(self) -> Recommendations:
        # Deep copy so callers can never mutate the cached catalog.
        return self._recommendations.model_copy(deep=True)


def _load_file(path: Path) -> Tuple[Recommendations, CatalogMeta]:
    """Purpose: Read and validate a catalog override file.
    Inputs/Outputs: Input is a Path; returns Recommendations and CatalogMeta.
    Side Effects / State: Reads file bytes and mtime.
    Dependencies: Uses json, hashlib, and Recommendations validation.
    Failure Modes: OSError, JSONDecodeError, or pydantic ValidationError propagate.
    Testing Notes: Write a temp JSON file and check names and meta.sha256.
    """
    # Hash the raw bytes for the startup log, then validate the shape.
    raw_bytes = path.read_bytes()
    sha256 = hashlib.sha256(raw_bytes).hexdigest()
    updated_at = datetime.fromtimestamp(path.stat().st_mtime).isoformat()
    data = json.loads(raw_bytes.decode("utf-8-sig"))
    recommendations = Recommendations.model_validate(data)
    return recommendations, CatalogMeta(source=path.name, updated_at=updated_at, sha256=sha256)
