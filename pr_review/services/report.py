"""Render review outcomes into the markdown report posted on the pull request.

Everything here is a pure function of its arguments so identical inputs
always render byte-identical output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

from pr_review.models.review import (
    PERFORMANCE_ISSUE_CATEGORIES,
    SECURITY_CATEGORIES,
    AggregateOutcome,
    ChangedFile,
    FileFindings,
    FindingCategory,
    ReviewResult,
    ReviewSpecialization,
    ReviewTarget,
)
from pr_review.services.patterns import UI_EXTENSIONS

BACKEND_EXTENSIONS = frozenset({".rs", ".py"})

REPORT_FILENAMES: Dict[ReviewSpecialization, str] = {
    ReviewSpecialization.GENERAL: "review_results.md",
    ReviewSpecialization.SECURITY: "security_results.md",
    ReviewSpecialization.PERFORMANCE: "performance_results.md",
    ReviewSpecialization.UNIFIED: "unified_review.md",
}


@dataclass(frozen=True)
class ReportProfile:
    title: str
    empty_message: str
    alert_heading: str
    alert_body: str
    clear_heading: str
    details_heading: str
    counted_categories: Tuple[FindingCategory, ...]
    footer: Tuple[str, ...]
    show_metrics: bool = False
    show_tips: bool = False


REPORT_PROFILES: Dict[ReviewSpecialization, ReportProfile] = {
    ReviewSpecialization.GENERAL: ReportProfile(
        title="## 🤖 AI Code Review",
        empty_message="No reviewable files found in this pull request.",
        alert_heading="### ⚠️ High-Risk Issues Detected",
        alert_body="At least one file review reports critical or high-risk issues.",
        clear_heading="### ✅ No High-Risk Issues Detected",
        details_heading="## 📝 Detailed File Reviews",
        counted_categories=SECURITY_CATEGORIES + PERFORMANCE_ISSUE_CATEGORIES,
        footer=(
            "*This review was generated automatically. Treat the feedback as suggestions "
            "and rely on your own judgment.*",
        ),
    ),
    ReviewSpecialization.SECURITY: ReportProfile(
        title="## 🔒 Security Review",
        empty_message="No files requiring security analysis.",
        alert_heading="### ⚠️ CRITICAL SECURITY ISSUES DETECTED",
        alert_body="This PR contains security issues that must be addressed before merging.",
        clear_heading="### ✅ No Critical Security Issues",
        details_heading="## Detailed Analysis",
        counted_categories=SECURITY_CATEGORIES,
        footer=(
            "*Security analysis powered by an LLM and pattern matching.*",
            "*Always perform manual security review for critical changes.*",
        ),
    ),
    ReviewSpecialization.PERFORMANCE: ReportProfile(
        title="## ⚡ Performance Review",
        empty_message="No files requiring performance analysis.",
        alert_heading="### ⚠️ High Impact Performance Issues Detected",
        alert_body="This PR contains performance issues that should be addressed.",
        clear_heading="### ✅ No Critical Performance Issues",
        details_heading="## 📝 Detailed Analysis",
        counted_categories=PERFORMANCE_ISSUE_CATEGORIES,
        footer=(
            "*Performance analysis powered by an LLM and pattern matching.*",
            "*Always benchmark changes to verify improvements.*",
        ),
        show_metrics=True,
        show_tips=True,
    ),
    ReviewSpecialization.UNIFIED: ReportProfile(
        title="## 🤖 AI Unified Review",
        empty_message="No files to review.",
        alert_heading="### ⚠️ High-Risk Issues Detected",
        alert_body="The unified review reports critical or high-risk issues.",
        clear_heading="### ✅ No High-Risk Issues Detected",
        details_heading="## 📝 Files Reviewed",
        counted_categories=SECURITY_CATEGORIES + PERFORMANCE_ISSUE_CATEGORIES,
        footer=(
            "*Unified LLM review covering code quality, security and performance.*",
            "*This review is advisory; the final decision rests with the developers.*",
        ),
        show_metrics=True,
    ),
}

FAILURE_HINTS: Tuple[str, ...] = (
    "- The LLM API key is missing or invalid",
    "- The configured model ({model}) is not accessible with this key",
    "- The API rate limit or quota was exceeded",
    "- Network connectivity problems",
)

PERFORMANCE_TIPS: Tuple[str, ...] = (
    "1. **Measure First**: Use profiling tools before optimizing",
    "2. **User Impact**: Focus on user-perceived performance",
    "3. **Progressive Enhancement**: Optimize critical paths first",
    "4. **Caching Strategy**: Implement appropriate caching layers",
    "5. **Lazy Loading**: Defer non-critical resource loading",
)

FINDING_HEADINGS: Dict[FindingCategory, str] = {
    FindingCategory.SECRET_EXPOSURE: "#### ⚠️ Potential Secrets Detected",
    FindingCategory.UNSAFE_EVAL: "#### 🔴 Vulnerability Patterns",
    FindingCategory.DATA_EXPOSURE: "#### 📊 Data Exposure Risks",
}


def render_empty_report(specialization: ReviewSpecialization) -> str:
    """The fixed document written when no file survives filtering."""

    profile = REPORT_PROFILES[specialization]
    return f"{profile.title}\n\n{profile.empty_message}\n"


def recommended_metrics(files: Sequence[ChangedFile]) -> List[str]:
    """Metric suggestions conditional on the technology mix of the change."""

    suggestions: List[str] = []
    has_ui = any(file.extension in UI_EXTENSIONS for file in files)
    has_backend = any(file.extension in BACKEND_EXTENSIONS for file in files)
    has_database = any(file.patch and "query" in file.patch for file in files)

    if has_ui:
        suggestions.append("- **Frontend Metrics**: LCP, FID, CLS, TTI")
        suggestions.append("- **Component Metrics**: Component render count, render time")
        suggestions.append("- **Bundle Size**: Before/after comparison")
    if has_backend:
        suggestions.append("- **API Metrics**: Response time (P50, P95, P99)")
        suggestions.append("- **Throughput**: Requests per second")
        suggestions.append("- **Resource Usage**: CPU, Memory, I/O")
    if has_database:
        suggestions.append("- **Query Performance**: Execution time, rows examined")
        suggestions.append("- **Connection Pool**: Active connections, wait time")
        suggestions.append("- **Cache Hit Rate**: Query cache, application cache")
    return suggestions


def _header(
    specialization: ReviewSpecialization,
    profile: ReportProfile,
    target: ReviewTarget,
    aggregate: AggregateOutcome,
) -> List[str]:
    lines = [
        f"{profile.title}\n",
        f"- Pull Request: #{target.pr_number}",
        f"- Files Analyzed: {aggregate.files_analyzed}",
        f"- Model: {target.model}",
    ]
    if specialization is ReviewSpecialization.UNIFIED:
        security = aggregate.group_total(SECURITY_CATEGORIES)
        performance = aggregate.group_total(PERFORMANCE_ISSUE_CATEGORIES)
        lines.append(f"- Pattern Detection: Security({security}), Performance({performance})")
    lines.append("")
    return lines


def _failure_block(results: Sequence[ReviewResult], model: str) -> List[str]:
    error = next((result.error for result in results if result.error), None) or "Unknown error"
    lines = [
        "### ⚠️ Review Failed\n",
        "The AI analysis could not be completed.",
        f"\n**Error:** {error}",
        "\n**Possible causes:**",
    ]
    lines.extend(hint.format(model=model) for hint in FAILURE_HINTS)
    lines.append("")
    return lines


def _summary_section(
    specialization: ReviewSpecialization,
    profile: ReportProfile,
    target: ReviewTarget,
    results: Sequence[ReviewResult],
    aggregate: AggregateOutcome,
    summary: str | None,
) -> List[str]:
    if aggregate.all_failed:
        return _failure_block(results, target.model)

    lines: List[str] = []
    if specialization is ReviewSpecialization.GENERAL and summary:
        lines.extend(["## 📊 Overall Summary\n", summary, ""])
    if aggregate.high_severity:
        lines.extend([f"{profile.alert_heading}\n", f"{profile.alert_body}\n"])
    else:
        lines.append(f"{profile.clear_heading}\n")
    if specialization is ReviewSpecialization.UNIFIED:
        narrative = next(result.narrative for result in results if result.succeeded)
        lines.extend([narrative, ""])
    return lines


def _metrics_section(files: Sequence[ChangedFile]) -> List[str]:
    lines = ["## 📊 Recommended Performance Metrics\n"]
    metrics = recommended_metrics(files)
    if metrics:
        lines.extend(metrics)
    else:
        lines.append("No specific metrics recommendations for this change.")
    lines.append("")
    return lines


def _pattern_summary_line(profile: ReportProfile, findings: FileFindings) -> List[str]:
    total = findings.total(profile.counted_categories)
    if total == 0:
        return []
    noun = "issue" if total == 1 else "issues"
    return [f"**Pattern Detection:** {total} potential {noun} found\n"]


def _security_finding_lists(findings: FileFindings) -> List[str]:
    lines: List[str] = []
    for category, heading in FINDING_HEADINGS.items():
        matches = findings.by_category(category)
        if not matches:
            continue
        lines.append(heading)
        lines.extend(f"- Line {finding.line}: `{finding.snippet}`" for finding in matches)
        lines.append("")
    return lines


def _error_notice(result: ReviewResult) -> str:
    return f"⚠️ Review could not be completed: {result.error or 'Unknown error'}\n"


def _file_section(
    specialization: ReviewSpecialization,
    profile: ReportProfile,
    result: ReviewResult,
    findings: FileFindings,
) -> List[str]:
    if specialization is ReviewSpecialization.GENERAL:
        if not result.succeeded:
            return [f"### 📄 {result.filename}\n", _error_notice(result)]
        lines = [f"### 📄 {result.filename} ({result.language})\n"]
        lines.extend(_pattern_summary_line(profile, findings))
        lines.extend([result.narrative, "", "---", ""])
        return lines

    if specialization is ReviewSpecialization.SECURITY:
        lines = [f"### 🔍 {result.filename}\n"]
        lines.extend(_pattern_summary_line(profile, findings))
        lines.extend(_security_finding_lists(findings))
        if result.succeeded:
            lines.extend(["#### 🤖 AI Security Analysis\n", result.narrative])
        else:
            lines.append(_error_notice(result))
        lines.append("\n---\n")
        return lines

    if specialization is ReviewSpecialization.PERFORMANCE:
        lines = [f"### {result.filename}\n"]
        lines.extend(_pattern_summary_line(profile, findings))
        lines.append(result.narrative if result.succeeded else _error_notice(result))
        lines.append("\n---\n")
        return lines

    # Unified: the narrative lives in the summary section.
    lines = [f"### {result.filename} ({result.language})\n"]
    lines.extend(_pattern_summary_line(profile, findings))
    return lines


def render_report(
    specialization: ReviewSpecialization,
    target: ReviewTarget,
    files: Sequence[ChangedFile],
    results: Sequence[ReviewResult],
    findings: Mapping[str, FileFindings],
    aggregate: AggregateOutcome,
    summary: str | None = None,
) -> str:
    """Render the sectioned markdown document for one review run."""

    if not results:
        return render_empty_report(specialization)

    profile = REPORT_PROFILES[specialization]
    report: List[str] = []
    report.extend(_header(specialization, profile, target, aggregate))
    report.extend(_summary_section(specialization, profile, target, results, aggregate, summary))
    if profile.show_metrics:
        report.extend(_metrics_section(files))

    report.append(f"{profile.details_heading}\n")
    for result in results:
        report.extend(_file_section(specialization, profile, result, findings.get(result.filename, FileFindings())))

    if profile.show_tips:
        report.append("## 💡 General Performance Tips\n")
        report.extend(PERFORMANCE_TIPS)
        report.append("")

    report.append("---")
    report.extend(profile.footer)
    return "\n".join(report) + "\n"
