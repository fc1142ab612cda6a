"""Fetch and filter the changed files of a pull request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from pr_review.github_client import GitHubAPIError, GitHubClient
from pr_review.logger import get_logger, log_timing, log_with_context
from pr_review.models.review import ChangedFile, extension_of

logger = get_logger()

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    ".ts": "TypeScript",
    ".tsx": "TypeScript React",
    ".js": "JavaScript",
    ".jsx": "JavaScript React",
    ".rs": "Rust",
    ".py": "Python",
    ".yml": "YAML",
    ".yaml": "YAML",
    ".json": "JSON",
    ".md": "Markdown",
    ".toml": "TOML",
    ".sh": "Shell",
    ".sql": "SQL",
    ".html": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
    ".sass": "SASS",
}

SUPPORTED_EXTENSIONS = frozenset({".ts", ".tsx", ".js", ".jsx", ".rs", ".py"})

UNKNOWN_LANGUAGE = "Unknown"


class FetchFailure(RuntimeError):
    """Raised when the changed-file list cannot be retrieved."""

    def __init__(self, message: str, status_code: int | None = None, original_error: Exception | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.original_error = original_error


@dataclass(frozen=True)
class FetchLimits:
    max_files: int = 20
    large_file_threshold: int = 1000


def detect_language(filename: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(extension_of(filename), UNKNOWN_LANGUAGE)


def _serialize_file(entry: Dict[str, Any]) -> ChangedFile | None:
    path = entry.get("filename") or entry.get("path")
    if not path:
        logger.warning(f"Skipping file entry missing filename/path: {entry}")
        return None
    return ChangedFile(
        filename=path,
        status=entry.get("status", ""),
        additions=int(entry.get("additions", 0) or 0),
        deletions=int(entry.get("deletions", 0) or 0),
        patch=entry.get("patch"),
        language=detect_language(path),
    )


def filter_changed_files(entries: List[Dict[str, Any]], limits: FetchLimits = FetchLimits()) -> List[ChangedFile]:
    """Apply the reviewability filters in order, preserving platform ordering."""

    selected: List[ChangedFile] = []
    for entry in entries:
        changed = _serialize_file(entry)
        if changed is None:
            continue
        if changed.status == "removed":
            continue
        if changed.additions > limits.large_file_threshold:
            logger.info(
                f"Skipping large file: {changed.filename} "
                f"(+{changed.additions} exceeds {limits.large_file_threshold})"
            )
            continue
        if changed.additions + changed.deletions == 0:
            continue
        if changed.extension not in SUPPORTED_EXTENSIONS:
            logger.debug(f"Skipping unsupported file type: {changed.filename}")
            continue
        selected.append(changed)

    if len(selected) > limits.max_files:
        logger.warning(
            f"Limiting review to the first {limits.max_files} of {len(selected)} eligible files"
        )
        selected = selected[: limits.max_files]
    return selected


async def fetch_changed_files(
    client: GitHubClient,
    repository: str,
    pr_number: int,
    *,
    limits: FetchLimits = FetchLimits(),
) -> List[ChangedFile]:
    ctx_logger = log_with_context(logger, repository=repository, pr_number=pr_number)
    ctx_logger.info(f"Fetching changed files for PR #{pr_number}")

    try:
        with log_timing(logger, "fetch_pr_files", repository=repository, pr_number=pr_number):
            entries = await client.list_pull_request_files(full_name=repository, pull_number=pr_number)
    except GitHubAPIError as exc:
        if exc.status_code == 404:
            ctx_logger.error(f"PR or repository not found (404): {exc}")
        elif exc.status_code in (401, 403):
            ctx_logger.error(f"Authentication or permission failure ({exc.status_code}): {exc}")
        elif exc.status_code == 429:
            ctx_logger.error(f"Rate limit exceeded (429): {exc}")
        else:
            ctx_logger.error(f"GitHub API error ({exc.status_code}): {exc}")
        raise FetchFailure(f"Could not list files for PR #{pr_number}: {exc}", exc.status_code, exc) from exc
    except ValueError as exc:
        raise FetchFailure(str(exc), None, exc) from exc

    files = filter_changed_files(entries, limits)
    ctx_logger.info(f"Found {len(files)} reviewable file(s) out of {len(entries)} changed")
    return files
