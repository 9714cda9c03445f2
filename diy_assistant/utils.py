import re
import unicodedata


def normalize_text(text: str) -> str:
    """Purpose: Normalize free-form user text for keyword matching.
    Inputs/Outputs: Input is a raw string; output is lowercase text with accents removed
        and whitespace collapsed. Punctuation is kept.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by the mock keyword table.
    Failure Modes: Returns an empty string when input is falsy.
    Testing Notes: "Living   Room" and "living room" normalize identically.
    """
    # Lowercase, strip combining marks, and collapse runs of whitespace.
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return re.sub(r"\s+", " ", stripped).strip()


def preview(text: str, limit: int = 50) -> str:
    """Shorten text for log lines so full user messages never reach the logs."""
    if not text:
        return ""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."
