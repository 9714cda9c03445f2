import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from diy_assistant.catalog import DEFAULT_MATERIALS, DEFAULT_TOOLS, FallbackCatalog
from diy_assistant.config import DEFAULT_AFFILIATE_TAG, DEFAULT_ASSISTANT_ID, load_settings
from diy_assistant.prompt_loader import load_prompt, render_prompt


def test_load_settings_defaults(monkeypatch):
    for name in (
        "OPENAI_API_KEY",
        "OPENAI_ASSISTANT_ID",
        "AFFILIATE_TAG",
        "MARKETPLACE_SEARCH_URL",
        "RUN_POLL_INTERVAL_S",
        "RUN_POLL_MAX_ATTEMPTS",
        "RUN_POLL_TIMEOUT_S",
        "FALLBACK_CATALOG_PATH",
        "MAX_SESSIONS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.mock_mode is True
    assert settings.assistant_id == DEFAULT_ASSISTANT_ID
    assert settings.affiliate_tag == DEFAULT_AFFILIATE_TAG
    assert (settings.poll_interval_s, settings.poll_max_attempts, settings.poll_timeout_s) == (1.0, 15, 20.0)
    assert settings.fallback_catalog_path is None
    assert (settings.prompts_dir / "recommendation_request.txt").is_file()


def test_load_settings_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("OPENAI_API_KEY", " sk-live ")
    monkeypatch.setenv("AFFILIATE_TAG", "shop-21")
    monkeypatch.setenv("RUN_POLL_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("FALLBACK_CATALOG_PATH", str(tmp_path / "catalog.json"))

    settings = load_settings()

    assert settings.mock_mode is False
    assert settings.openai_api_key == "sk-live"
    assert settings.affiliate_tag == "shop-21"
    assert settings.poll_max_attempts == 5
    assert settings.fallback_catalog_path == tmp_path / "catalog.json"


def test_load_settings_rejects_non_numeric_bounds(monkeypatch):
    monkeypatch.setenv("RUN_POLL_TIMEOUT_S", "soon")

    with pytest.raises(ValueError):
        load_settings()


def test_builtin_catalog_has_links_for_every_item():
    catalog = FallbackCatalog()
    recommendations = catalog.recommendations()

    assert [item.name for item in recommendations.materials] == DEFAULT_MATERIALS
    assert [item.name for item in recommendations.tools] == DEFAULT_TOOLS
    assert all(item.affiliate_url.endswith("&tag=aiconstructio-20") for item in recommendations.all_items())
    assert catalog.meta.source == "builtin"


def test_catalog_copies_are_independent():
    catalog = FallbackCatalog()
    first = catalog.recommendations()
    first.materials.clear()

    assert len(catalog.recommendations().materials) == len(DEFAULT_MATERIALS)


def test_catalog_override_file(tmp_path: Path):
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps({"materials": [{"name": "Cement Board"}], "tools": [{"name": "Notched Trowel"}]}),
        encoding="utf-8",
    )

    catalog = FallbackCatalog(path, affiliate_tag="shop-21", search_url="https://shop.test/search")
    recommendations = catalog.recommendations()

    assert recommendations.materials[0].affiliate_url == "https://shop.test/search?k=Cement+Board&tag=shop-21"
    assert catalog.meta.source == "catalog.json"
    assert len(catalog.meta.sha256) == 64


def test_catalog_override_rejects_bad_shape(tmp_path: Path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"materials": [{"name": ""}], "tools": []}), encoding="utf-8")

    with pytest.raises(ValidationError):
        FallbackCatalog(path)


def test_prompts_render(settings):
    request_prompt = load_prompt(settings.prompts_dir / "recommendation_request.txt")
    priming = render_prompt(settings.prompts_dir / "system_priming.txt", context="Budget is tight.")

    assert '"materials"' in request_prompt and '"tools"' in request_prompt
    assert priming.endswith("Budget is tight.")
    assert "<<" not in priming
