"""Shared data structures for the review pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Tuple


class ReviewSpecialization(str, Enum):
    GENERAL = "general"
    SECURITY = "security"
    PERFORMANCE = "performance"
    UNIFIED = "unified"

    @property
    def is_batched(self) -> bool:
        return self is ReviewSpecialization.UNIFIED


class ReviewStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class FindingCategory(str, Enum):
    SECRET_EXPOSURE = "secret_exposure"
    UNSAFE_EVAL = "unsafe_eval"
    DATA_EXPOSURE = "data_exposure"
    INEFFICIENT_RENDER = "inefficient_render"
    RENDER_OPTIMIZATION = "render_optimization"
    LOOP_CONSTRUCT = "loop_construct"
    MEMORY_ALLOCATION = "memory_allocation"
    QUERY_PATTERN = "query_pattern"


SECURITY_CATEGORIES: Tuple[FindingCategory, ...] = (
    FindingCategory.SECRET_EXPOSURE,
    FindingCategory.UNSAFE_EVAL,
    FindingCategory.DATA_EXPOSURE,
)

PERFORMANCE_CATEGORIES: Tuple[FindingCategory, ...] = (
    FindingCategory.INEFFICIENT_RENDER,
    FindingCategory.RENDER_OPTIMIZATION,
    FindingCategory.LOOP_CONSTRUCT,
    FindingCategory.MEMORY_ALLOCATION,
    FindingCategory.QUERY_PATTERN,
)

# Optimization usage is informational and never counted as an issue.
PERFORMANCE_ISSUE_CATEGORIES: Tuple[FindingCategory, ...] = tuple(
    category for category in PERFORMANCE_CATEGORIES if category is not FindingCategory.RENDER_OPTIMIZATION
)


def extension_of(filename: str) -> str:
    """Return the lower-cased extension of ``filename`` including the dot."""

    name = filename.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return "." + name.rsplit(".", 1)[-1].lower()


@dataclass(frozen=True, slots=True)
class ChangedFile:
    filename: str
    status: str
    additions: int
    deletions: int
    language: str
    patch: str | None = None

    @property
    def extension(self) -> str:
        return extension_of(self.filename)


@dataclass(frozen=True, slots=True)
class Finding:
    category: FindingCategory
    line: int
    snippet: str
    pattern_id: str


@dataclass(frozen=True, slots=True)
class FileFindings:
    """All pattern matches for one file, ordered by added-line index."""

    matches: Tuple[Finding, ...] = ()

    def by_category(self, category: FindingCategory) -> List[Finding]:
        return [finding for finding in self.matches if finding.category is category]

    @property
    def categories(self) -> Dict[FindingCategory, List[Finding]]:
        return {category: self.by_category(category) for category in FindingCategory}

    def counts(self) -> Dict[FindingCategory, int]:
        counts = {category: 0 for category in FindingCategory}
        for finding in self.matches:
            counts[finding.category] += 1
        return counts

    def total(self, categories: Iterable[FindingCategory]) -> int:
        wanted = set(categories)
        return sum(1 for finding in self.matches if finding.category in wanted)

    def __bool__(self) -> bool:
        return bool(self.matches)


@dataclass(frozen=True, slots=True)
class ReviewResult:
    filename: str
    language: str
    status: ReviewStatus
    narrative: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is ReviewStatus.SUCCESS


@dataclass(frozen=True, slots=True)
class AggregateOutcome:
    files_analyzed: int
    high_severity: bool
    succeeded: int
    failed: int
    category_totals: Dict[FindingCategory, int] = field(default_factory=dict)

    def group_total(self, categories: Iterable[FindingCategory]) -> int:
        return sum(self.category_totals.get(category, 0) for category in categories)

    @property
    def all_failed(self) -> bool:
        return self.files_analyzed > 0 and self.succeeded == 0


@dataclass(frozen=True, slots=True)
class ReviewTarget:
    repository: str
    pr_number: int
    model: str
