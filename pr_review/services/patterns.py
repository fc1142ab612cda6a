"""Heuristic anti-pattern detection over the added lines of a patch.

Every rule is a stateless per-line regular expression. The engine does not
parse code, so matches inside comments or string literals are expected; the
findings only steer the LLM prompt and the report, they never gate a merge.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Tuple

from pr_review.models.review import (
    FileFindings,
    Finding,
    FindingCategory,
    extension_of,
)

SNIPPET_MAX_CHARS = 100
UI_EXTENSIONS = frozenset({".tsx", ".jsx"})
SYSTEMS_EXTENSIONS = frozenset({".rs"})
QUERY_HINTS = ("query", "SELECT")


class RuleScope(str, Enum):
    ANY_FILE = "any_file"
    UI_FILE = "ui_file"
    QUERY_CONTEXT = "query_context"


@dataclass(frozen=True)
class PatternRule:
    category: FindingCategory
    pattern_id: str
    matcher: re.Pattern[str]
    scope: RuleScope = RuleScope.ANY_FILE


def _rule(
    category: FindingCategory,
    pattern_id: str,
    pattern: str,
    *,
    flags: int = 0,
    scope: RuleScope = RuleScope.ANY_FILE,
) -> PatternRule:
    return PatternRule(category, pattern_id, re.compile(pattern, flags), scope)


# ── Rule table ───────────────────────────────────────────────────────────────

PATTERN_RULES: Tuple[PatternRule, ...] = (
    # Security: always active
    _rule(FindingCategory.SECRET_EXPOSURE, "secret.api_key", r"api[_-]?key", flags=re.IGNORECASE),
    _rule(FindingCategory.SECRET_EXPOSURE, "secret.secret", r"secret", flags=re.IGNORECASE),
    _rule(FindingCategory.SECRET_EXPOSURE, "secret.token", r"token", flags=re.IGNORECASE),
    _rule(FindingCategory.SECRET_EXPOSURE, "secret.password", r"password", flags=re.IGNORECASE),
    _rule(FindingCategory.SECRET_EXPOSURE, "secret.private_key", r"private[_-]?key", flags=re.IGNORECASE),
    _rule(FindingCategory.SECRET_EXPOSURE, "secret.access_key", r"access[_-]?key", flags=re.IGNORECASE),
    _rule(FindingCategory.UNSAFE_EVAL, "unsafe.eval", r"eval\("),
    _rule(FindingCategory.UNSAFE_EVAL, "unsafe.exec", r"exec\("),
    _rule(FindingCategory.UNSAFE_EVAL, "unsafe.inner_html", r"innerHTML"),
    _rule(FindingCategory.UNSAFE_EVAL, "unsafe.dangerously_set_inner_html", r"dangerouslySetInnerHTML"),
    _rule(FindingCategory.UNSAFE_EVAL, "unsafe.document_write", r"document\.write"),
    _rule(FindingCategory.UNSAFE_EVAL, "unsafe.raw_query", r"\.raw\("),
    _rule(FindingCategory.DATA_EXPOSURE, "exposure.console", r"console\.(log|error|warn|info)"),
    _rule(FindingCategory.DATA_EXPOSURE, "exposure.process_env", r"process\.env"),
    _rule(FindingCategory.DATA_EXPOSURE, "exposure.local_storage", r"localStorage"),
    _rule(FindingCategory.DATA_EXPOSURE, "exposure.session_storage", r"sessionStorage"),
    _rule(FindingCategory.DATA_EXPOSURE, "exposure.document_cookie", r"document\.cookie"),
    # Performance: UI components only
    _rule(FindingCategory.INEFFICIENT_RENDER, "render.chained_map", r"\.map\([^)]*\)\.map\(", scope=RuleScope.UI_FILE),
    _rule(FindingCategory.INEFFICIENT_RENDER, "render.filter_then_map", r"\.filter\([^)]*\)\.map\(", scope=RuleScope.UI_FILE),
    _rule(FindingCategory.INEFFICIENT_RENDER, "render.untyped_state_array", r"useState.*\[\]", scope=RuleScope.UI_FILE),
    _rule(FindingCategory.INEFFICIENT_RENDER, "render.effect_without_deps", r"useEffect\([^,]*\)", scope=RuleScope.UI_FILE),
    _rule(FindingCategory.RENDER_OPTIMIZATION, "optimization.use_memo", r"useMemo", scope=RuleScope.UI_FILE),
    _rule(FindingCategory.RENDER_OPTIMIZATION, "optimization.use_callback", r"useCallback", scope=RuleScope.UI_FILE),
    _rule(FindingCategory.RENDER_OPTIMIZATION, "optimization.react_memo", r"React\.memo", scope=RuleScope.UI_FILE),
    _rule(FindingCategory.RENDER_OPTIMIZATION, "optimization.lazy", r"lazy", scope=RuleScope.UI_FILE),
    # Performance: any supported file
    _rule(FindingCategory.LOOP_CONSTRUCT, "loop.for_in", r"for.*in\s"),
    _rule(FindingCategory.LOOP_CONSTRUCT, "loop.spread", r"\.\.\."),
    _rule(FindingCategory.LOOP_CONSTRUCT, "loop.concat", r"concat\("),
    _rule(FindingCategory.MEMORY_ALLOCATION, "memory.large_array", r"new Array\(\d{5,}\)"),
    _rule(FindingCategory.MEMORY_ALLOCATION, "memory.slice_copy", r"\.slice\(\)"),
    _rule(FindingCategory.MEMORY_ALLOCATION, "memory.json_deep_clone", r"JSON\.parse.*JSON\.stringify"),
    # Performance: systems-language files or query-looking lines
    _rule(FindingCategory.QUERY_PATTERN, "query.select_star", r"SELECT \*", scope=RuleScope.QUERY_CONTEXT),
    _rule(FindingCategory.QUERY_PATTERN, "query.n_plus_one", r"N\+1", flags=re.IGNORECASE, scope=RuleScope.QUERY_CONTEXT),
    _rule(FindingCategory.QUERY_PATTERN, "query.triple_join", r"JOIN.*JOIN.*JOIN", scope=RuleScope.QUERY_CONTEXT),
)


def iter_added_lines(patch: str | None) -> Iterator[Tuple[int, str]]:
    """Yield ``(added_index, text)`` for each added line, 1-based, without the marker."""

    if not patch:
        return
    index = 0
    for raw_line in patch.split("\n"):
        if not raw_line.startswith("+") or raw_line.startswith("+++"):
            continue
        index += 1
        yield index, raw_line[1:]


def _rule_applies(rule: PatternRule, *, is_ui: bool, is_systems: bool, line: str) -> bool:
    if rule.scope is RuleScope.UI_FILE:
        return is_ui
    if rule.scope is RuleScope.QUERY_CONTEXT:
        return is_systems or any(hint in line for hint in QUERY_HINTS)
    return True


def _snippet(line: str) -> str:
    return line.strip()[:SNIPPET_MAX_CHARS]


def scan_patch(patch: str | None, filename: str) -> FileFindings:
    """Classify every added line of ``patch`` against the rule table."""

    extension = extension_of(filename)
    is_ui = extension in UI_EXTENSIONS
    is_systems = extension in SYSTEMS_EXTENSIONS

    matches: List[Finding] = []
    for index, line in iter_added_lines(patch):
        for rule in PATTERN_RULES:
            if not _rule_applies(rule, is_ui=is_ui, is_systems=is_systems, line=line):
                continue
            if rule.matcher.search(line):
                matches.append(
                    Finding(
                        category=rule.category,
                        line=index,
                        snippet=_snippet(line),
                        pattern_id=rule.pattern_id,
                    )
                )
    return FileFindings(matches=tuple(matches))
