"""Source configuration models and loader."""

import json
from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from docgate.errors import ConfigError

Lang = Literal["ja", "zh", "en"]


class AuthConfig(BaseModel):
    """Per-source credentials injected into every fetch."""

    model_config = ConfigDict(frozen=True)

    cookies: str | None = None  # "session_id=abc; token=xyz"
    authorization: str | None = None  # "Bearer ..." / "Basic ..."
    headers: dict[str, str] = Field(default_factory=dict)


class SourceConfig(BaseModel):
    """A crawlable source. Immutable for the duration of a crawl run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    type: Literal["official", "organization", "education"] = "official"
    lang: Lang
    version: str = Field(min_length=1)
    seeds: list[str] = Field(min_length=1)
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    max_depth: int = Field(default=2, ge=0, le=10, alias="maxDepth")
    max_pages: int = Field(default=50, ge=1, le=1000, alias="maxPages")
    auth: AuthConfig | None = None

    @field_validator("seeds")
    @classmethod
    def _seeds_are_http_urls(cls, seeds: list[str]) -> list[str]:
        for seed in seeds:
            parts = urlsplit(seed)
            if parts.scheme not in ("http", "https") or not parts.netloc:
                raise ValueError(f"seed is not an http(s) URL: {seed}")
        return seeds


def validate_sources(raw: object) -> list[SourceConfig]:
    """
    Validate a decoded sources document (a JSON array of source objects).

    Raises:
        ConfigError: with every validation problem joined into one message
    """
    if not isinstance(raw, list):
        raise ConfigError("sources config must be a list of source objects")

    sources = []
    problems = []
    for position, item in enumerate(raw):
        try:
            sources.append(SourceConfig.model_validate(item))
        except ValidationError as e:
            for err in e.errors():
                path = ".".join(str(p) for p in (position, *err["loc"]))
                problems.append(f"{path}: {err['msg']}")

    if problems:
        raise ConfigError("invalid sources config: " + ", ".join(problems))

    ids = [s.id for s in sources]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigError(f"duplicate source ids: {', '.join(duplicates)}")

    return sources


def load_sources(path: str | Path) -> list[SourceConfig]:
    """Load and validate a sources JSON file."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"sources file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"sources file is not valid JSON: {path}: {e}") from e
    return validate_sources(raw)
