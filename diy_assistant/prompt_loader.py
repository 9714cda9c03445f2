from __future__ import annotations

from functools import lru_cache
from pathlib import Path


@lru_cache(maxsize=32)
def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt file as UTF-8 text with BOM and trailing newline removed.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: Reads the filesystem once per path; results are cached.
    Dependencies: Uses Path.read_text; used by the submission and priming steps.
    Failure Modes: Missing files raise FileNotFoundError at first use.
    Testing Notes: Compare against the shipped prompts directory.
    """
    return prompt_path.read_text(encoding="utf-8").lstrip("\ufeff").strip()


def render_prompt(prompt_path: Path, **values: str) -> str:
    """Fill <<KEY>> placeholders in a prompt template."""
    text = load_prompt(prompt_path)
    for key, value in values.items():
        text = text.replace(f"<<{key.upper()}>>", value)
    return text.strip()
