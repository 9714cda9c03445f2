from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent

DEFAULT_ASSISTANT_ID = "asst_WIsQYJ9qrxCAONyV8SoElwnT"
DEFAULT_AFFILIATE_TAG = "aiconstructio-20"
DEFAULT_SEARCH_URL = "https://www.amazon.com/s"


@dataclass(frozen=True)
class Settings:
    """Configuration container for the assistant, polling bounds, and links."""
    openai_api_key: str
    assistant_id: str
    affiliate_tag: str
    marketplace_search_url: str
    poll_interval_s: float
    poll_max_attempts: int
    poll_timeout_s: float
    prompts_dir: Path
    fallback_catalog_path: Optional[Path]
    max_sessions: int

    @property
    def mock_mode(self) -> bool:
        # Without credentials the remote job service cannot be reached at all.
        return not self.openai_api_key


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Non-numeric RUN_POLL_* or MAX_SESSIONS values raise ValueError.
    Testing Notes: Verify defaults and overrides via monkeypatched environment.
    """
    # Resolve optional catalog override, then build Settings.
    catalog_path = os.getenv("FALLBACK_CATALOG_PATH", "").strip()

    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
        assistant_id=os.getenv("OPENAI_ASSISTANT_ID", "").strip() or DEFAULT_ASSISTANT_ID,
        affiliate_tag=os.getenv("AFFILIATE_TAG", "").strip() or DEFAULT_AFFILIATE_TAG,
        marketplace_search_url=os.getenv("MARKETPLACE_SEARCH_URL", "").strip() or DEFAULT_SEARCH_URL,
        poll_interval_s=float(os.getenv("RUN_POLL_INTERVAL_S", "1.0")),
        poll_max_attempts=int(os.getenv("RUN_POLL_MAX_ATTEMPTS", "15")),
        poll_timeout_s=float(os.getenv("RUN_POLL_TIMEOUT_S", "20.0")),
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        fallback_catalog_path=Path(catalog_path) if catalog_path else None,
        max_sessions=int(os.getenv("MAX_SESSIONS", "200")),
    )
