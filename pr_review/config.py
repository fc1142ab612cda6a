"""Pipeline configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Final, Tuple

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, BaseModel, Field, ValidationError

# Load environment variables from a local .env file when present
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class SettingsError(RuntimeError):
    """Raised when pipeline configuration is invalid or incomplete."""


DEFAULT_SEVERITY_KEYWORDS: Final[Tuple[str, ...]] = ("critical", "high risk", "🔴")


@dataclass(frozen=True)
class ReviewCredentials:
    github_token: str
    llm_api_key: str


class Settings(BaseModel):
    """Runtime settings loaded from environment variables."""

    repository: str | None = None
    pr_number: int | None = None
    github_token: str | None = None
    llm_api_key: str | None = None
    github_api_base_url: AnyHttpUrl = "https://api.github.com"
    llm_api_base_url: AnyHttpUrl = "https://api.openai.com/v1"
    review_model: str = "gpt-4-turbo-preview"
    unified_review_model: str = "gpt-5-mini"
    max_files_per_review: int = Field(default=20, ge=1)
    large_file_threshold: int = Field(default=1000, ge=0)
    output_dir: Path = Path(".")
    annotate: bool = True
    severity_keywords: Tuple[str, ...] = DEFAULT_SEVERITY_KEYWORDS

    @property
    def normalized_github_api_base_url(self) -> str:
        """Return the GitHub API base URL without a trailing slash."""
        return str(self.github_api_base_url).rstrip("/")

    @property
    def normalized_llm_api_base_url(self) -> str:
        """Return the LLM API base URL without a trailing slash."""
        return str(self.llm_api_base_url).rstrip("/")

    def require_review_target(self) -> tuple[str, int]:
        """Return ``(repository, pr_number)`` or fail listing what is missing."""

        missing = []
        if not self.repository:
            missing.append("REPOSITORY")
        if self.pr_number is None:
            missing.append("PR_NUMBER")
        if missing:
            raise SettingsError(
                "Review target is not configured. Missing environment variables: "
                f"{', '.join(missing)}."
            )
        if "/" not in self.repository:
            raise SettingsError(
                f"REPOSITORY must look like 'owner/name', got '{self.repository}'."
            )
        return self.repository, int(self.pr_number)

    def require_review_credentials(self) -> ReviewCredentials:
        """Ensure API secrets are configured and return them."""

        missing = []
        if not self.github_token:
            missing.append("GITHUB_TOKEN")
        if not self.llm_api_key:
            missing.append("OPENAI_API_KEY")

        if missing:
            missing_vars = ", ".join(missing)
            raise SettingsError(
                "Code review is not configured. Missing environment variables: "
                f"{missing_vars}."
            )

        return ReviewCredentials(
            github_token=self.github_token,
            llm_api_key=self.llm_api_key,
        )


_TRUE_VALUES: Final[set[str]] = {"1", "true", "yes", "on"}


def _parse_bool_env(raw_value: str | None, *, default: bool = False) -> bool:
    """Convert an environment variable string to a boolean value."""

    if raw_value is None:
        return default
    return raw_value.strip().lower() in _TRUE_VALUES


def _parse_int_env(name: str, raw_value: str | None) -> int | None:
    if raw_value is None or not raw_value.strip():
        return None
    try:
        return int(raw_value)
    except ValueError as exc:
        raise SettingsError(f"Invalid value for {name}. It must be an integer.") from exc


def _parse_keywords_env(raw_value: str | None) -> Tuple[str, ...]:
    if not raw_value:
        return DEFAULT_SEVERITY_KEYWORDS
    keywords = tuple(word.strip().lower() for word in raw_value.split(",") if word.strip())
    return keywords or DEFAULT_SEVERITY_KEYWORDS


def _build_settings() -> Settings:
    values = {
        "repository": os.getenv("REPOSITORY") or None,
        "pr_number": _parse_int_env("PR_NUMBER", os.getenv("PR_NUMBER")),
        "github_token": os.getenv("GITHUB_TOKEN"),
        "llm_api_key": os.getenv("OPENAI_API_KEY"),
        "github_api_base_url": os.getenv("GITHUB_API_BASE_URL") or "https://api.github.com",
        "llm_api_base_url": os.getenv("OPENAI_BASE_URL") or "https://api.openai.com/v1",
        "output_dir": Path(os.getenv("REVIEW_OUTPUT_DIR") or "."),
        "annotate": _parse_bool_env(os.getenv("REVIEW_ANNOTATE"), default=True),
        "severity_keywords": _parse_keywords_env(os.getenv("SEVERITY_KEYWORDS")),
    }

    if model := os.getenv("REVIEW_MODEL"):
        values["review_model"] = model
    if model := os.getenv("UNIFIED_REVIEW_MODEL"):
        values["unified_review_model"] = model

    max_files = _parse_int_env("MAX_FILES_PER_REVIEW", os.getenv("MAX_FILES_PER_REVIEW"))
    if max_files is not None:
        values["max_files_per_review"] = max_files
    threshold = _parse_int_env("LARGE_FILE_THRESHOLD", os.getenv("LARGE_FILE_THRESHOLD"))
    if threshold is not None:
        values["large_file_threshold"] = threshold

    try:
        return Settings(**values)
    except ValidationError as exc:
        raise SettingsError(f"Invalid pipeline configuration: {exc}") from exc


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return _build_settings()


def get_settings() -> Settings:
    """Retrieve cached pipeline settings."""
    return _cached_settings()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for tests)."""
    _cached_settings.cache_clear()
