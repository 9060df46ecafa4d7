import json
from pathlib import Path

import pytest

from docgate.config import Settings
from docgate.errors import ConfigError
from docgate.models.source import load_sources, validate_sources


def source(**overrides) -> dict:
    data = {
        "id": "mlit",
        "title": "MLIT",
        "lang": "ja",
        "version": "2025",
        "seeds": ["https://www.mlit.go.jp/"],
    }
    data.update(overrides)
    return data


def test_defaults_and_aliases():
    (parsed,) = validate_sources([source(maxDepth=3, maxPages=20, auth={"cookies": "a=b"})])

    assert parsed.max_depth == 3
    assert parsed.max_pages == 20
    assert parsed.type == "official"
    assert parsed.auth.cookies == "a=b"
    assert validate_sources([source()])[0].max_depth == 2
    assert validate_sources([source()])[0].max_pages == 50


@pytest.mark.parametrize(
    "overrides",
    [
        {"lang": "fr"},
        {"seeds": []},
        {"seeds": ["ftp://example.test/"]},
        {"maxDepth": 11},
        {"maxPages": 0},
        {"maxPages": 1001},
        {"version": ""},
    ],
)
def test_invalid_sources_are_rejected(overrides):
    with pytest.raises(ConfigError):
        validate_sources([source(**overrides)])


def test_every_problem_is_reported():
    with pytest.raises(ConfigError) as exc_info:
        validate_sources([source(lang="fr"), source(id="b", maxDepth=-1)])

    assert "0.lang" in exc_info.value.message
    assert "1.maxDepth" in exc_info.value.message


def test_duplicate_ids_are_rejected():
    with pytest.raises(ConfigError, match="duplicate source ids: mlit"):
        validate_sources([source(), source()])


def test_document_must_be_a_list():
    with pytest.raises(ConfigError):
        validate_sources({"sources": []})


def test_load_sources_from_file(tmp_path):
    path = tmp_path / "sources.json"
    path.write_text(json.dumps([source(), source(id="other")]), encoding="utf-8")

    assert [s.id for s in load_sources(path)] == ["mlit", "other"]


def test_load_sources_errors(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_sources(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("[", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid JSON"):
        load_sources(broken)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DOCGATE_CRAWL_CONCURRENCY", "2")
    monkeypatch.setenv("DOCGATE_INGEST_API_TOKEN", "t0k")

    settings = Settings()

    assert settings.crawl_concurrency == 2
    assert settings.ingest_api_token == "t0k"
    assert settings.chunk_max_chars == 800


def test_bundled_sources_file_is_valid():
    assert load_sources(Path(__file__).parent.parent / "config" / "sources.json")
