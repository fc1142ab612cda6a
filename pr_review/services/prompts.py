"""Prompt construction for per-file, batched and summary LLM requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from pr_review.llm_client import ChatMessage, CompletionParams
from pr_review.models.review import (
    ChangedFile,
    FileFindings,
    FindingCategory,
    ReviewResult,
    ReviewSpecialization,
)
from pr_review.services.patterns import iter_added_lines

BATCH_MAX_LINES_PER_FILE = 100
NO_PATCH_PLACEHOLDER = "(no patch available)"

SYSTEM_PERSONAS: Dict[ReviewSpecialization, str] = {
    ReviewSpecialization.GENERAL: "You are a senior software engineer performing code reviews.",
    ReviewSpecialization.SECURITY: (
        "You are a security expert specializing in application security and vulnerability assessment."
    ),
    ReviewSpecialization.PERFORMANCE: (
        "You are a performance engineer specializing in web application optimization."
    ),
    ReviewSpecialization.UNIFIED: (
        "You are a senior engineer specializing in code review, security and performance "
        "optimization. You give practical, specific feedback."
    ),
}
SUMMARY_PERSONA = "You are a senior software engineer summarizing code review results."

# (temperature, max output tokens)
SAMPLING: Dict[ReviewSpecialization, Tuple[float, int]] = {
    ReviewSpecialization.GENERAL: (0.3, 1500),
    ReviewSpecialization.SECURITY: (0.2, 1500),
    ReviewSpecialization.PERFORMANCE: (0.3, 1500),
    ReviewSpecialization.UNIFIED: (0.2, 2500),
}
SUMMARY_SAMPLING: Tuple[float, int] = (0.2, 1000)


@dataclass(frozen=True)
class ReviewPrompt:
    messages: Tuple[ChatMessage, ...]
    params: CompletionParams
    filename: str | None = None

    @property
    def user_content(self) -> str:
        return self.messages[-1].content


def _make_prompt(
    persona: str,
    body: str,
    *,
    model: str,
    sampling: Tuple[float, int],
    filename: str | None = None,
) -> ReviewPrompt:
    temperature, max_tokens = sampling
    return ReviewPrompt(
        messages=(
            ChatMessage(role="system", content=persona),
            ChatMessage(role="user", content=body),
        ),
        params=CompletionParams(model=model, temperature=temperature, max_tokens=max_tokens),
        filename=filename,
    )


def _diff_block(text: str) -> str:
    return f"```diff\n{text}\n```"


# ── Per-file mode ────────────────────────────────────────────────────────────


def _general_body(file: ChangedFile) -> str:
    return f"""You are an expert code reviewer. Review the following code change and provide constructive feedback.

File: {file.filename}
Language: {file.language}
Status: {file.status}
Changes: +{file.additions} -{file.deletions}

Code changes:
{_diff_block(file.patch or NO_PATCH_PLACEHOLDER)}

Please analyze:
1. **Code Quality**: readability, maintainability, adherence to best practices
2. **Potential Bugs**: logic errors, edge cases, runtime issues
3. **Security Issues**: vulnerabilities, data exposure, injection risks
4. **Performance**: inefficiencies or optimization opportunities
5. **Testing**: missing test coverage or testability problems
6. **Documentation**: missing or unclear comments and docs

Respond in this format:
- **Summary**: short overview of the change
- **Strengths**: what is done well
- **Issues**: problems that need fixing (if any)
- **Suggestions**: recommendations for improvement
- **Risk Level**: Low/Medium/High

Be constructive and specific. Focus on important issues rather than style preferences."""


def _security_body(file: ChangedFile, findings: FileFindings) -> str:
    counts = findings.counts()
    return f"""You are a security expert reviewing code changes. Analyze the following information and provide security recommendations.

File: {file.filename}
Language: {file.language}

Code Diff:
{_diff_block(file.patch or NO_PATCH_PLACEHOLDER)}

Pattern-based findings:
- Potential secrets: {counts[FindingCategory.SECRET_EXPOSURE]} occurrences
- Vulnerability patterns: {counts[FindingCategory.UNSAFE_EVAL]} occurrences
- Data exposure risks: {counts[FindingCategory.DATA_EXPOSURE]} occurrences

Please analyze for:
1. **Critical Security Issues**: Immediate vulnerabilities that must be fixed
2. **High-Risk Patterns**: Dangerous code patterns that could lead to security issues
3. **Data Protection**: Issues with handling sensitive data
4. **Authentication/Authorization**: Problems with access control
5. **Input Validation**: Missing or inadequate input sanitization
6. **Cryptography**: Weak or misused cryptographic functions

Format your response as:
- **Risk Level**: Critical/High/Medium/Low
- **Issues Found**: List of specific security problems
- **Recommendations**: How to fix each issue
- **Security Best Practices**: Additional suggestions for this type of code

Focus on actual security risks, not style or minor issues."""


def _performance_body(file: ChangedFile, findings: FileFindings) -> str:
    counts = findings.counts()
    return f"""You are a performance optimization expert. Review the following code changes and provide performance recommendations.

File: {file.filename}
Language: {file.language}
Changes: +{file.additions} -{file.deletions}

Code Diff:
{_diff_block(file.patch or NO_PATCH_PLACEHOLDER)}

Initial findings:
- UI render inefficiencies: {counts[FindingCategory.INEFFICIENT_RENDER]}
- UI render optimizations used: {counts[FindingCategory.RENDER_OPTIMIZATION]}
- Loop issues: {counts[FindingCategory.LOOP_CONSTRUCT]}
- Memory concerns: {counts[FindingCategory.MEMORY_ALLOCATION]}
- Database query issues: {counts[FindingCategory.QUERY_PATTERN]}

Please analyze for:
1. **Algorithm Complexity**: O(n^2) or worse patterns
2. **Memory Usage**: Unnecessary allocations, memory leaks
3. **Rendering Performance**: Re-render issues, virtual DOM thrashing
4. **Network Optimization**: Redundant API calls, missing caching
5. **Bundle Size**: Large imports, tree-shaking issues
6. **Database Performance**: Query optimization, indexing needs

Provide:
- **Performance Impact**: Critical/High/Medium/Low
- **Bottlenecks Found**: Specific performance issues
- **Optimization Suggestions**: Concrete improvements with code examples
- **Benchmarking Recommendations**: What to measure

Focus on measurable performance improvements, not micro-optimizations."""


def build_file_prompt(
    specialization: ReviewSpecialization,
    file: ChangedFile,
    findings: FileFindings,
    *,
    model: str,
) -> ReviewPrompt:
    """Build the single-file request for a per-file specialization."""

    if specialization is ReviewSpecialization.GENERAL:
        body = _general_body(file)
    elif specialization is ReviewSpecialization.SECURITY:
        body = _security_body(file, findings)
    elif specialization is ReviewSpecialization.PERFORMANCE:
        body = _performance_body(file, findings)
    else:
        raise ValueError(f"{specialization.value} reviews are batched; use build_batch_prompt().")

    return _make_prompt(
        SYSTEM_PERSONAS[specialization],
        body,
        model=model,
        sampling=SAMPLING[specialization],
        filename=file.filename,
    )


# ── Batched mode ─────────────────────────────────────────────────────────────


def truncated_added_lines(patch: str | None, max_lines: int = BATCH_MAX_LINES_PER_FILE) -> Tuple[List[str], int]:
    """Return at most ``max_lines`` added lines (``+`` kept) and the total count."""

    lines = [f"+{text}" for _, text in iter_added_lines(patch)]
    return lines[:max_lines], len(lines)


def format_pattern_summary(findings: FileFindings) -> str:
    counts = findings.counts()
    return (
        f"- Security: secrets({counts[FindingCategory.SECRET_EXPOSURE]}), "
        f"unsafe eval({counts[FindingCategory.UNSAFE_EVAL]}), "
        f"data exposure({counts[FindingCategory.DATA_EXPOSURE]})\n"
        f"- Performance: render({counts[FindingCategory.INEFFICIENT_RENDER]}), "
        f"loops({counts[FindingCategory.LOOP_CONSTRUCT]}), "
        f"memory({counts[FindingCategory.MEMORY_ALLOCATION]}), "
        f"database({counts[FindingCategory.QUERY_PATTERN]})"
    )


def _batch_file_section(file: ChangedFile, findings: FileFindings, max_lines: int) -> str:
    lines, total = truncated_added_lines(file.patch, max_lines)
    section = [
        f"📁 **{file.filename}** ({file.additions}+ {file.deletions}-)",
        _diff_block("\n".join(lines)),
    ]
    if total > len(lines):
        section.append(f"({total - len(lines)} more added lines not shown)")
    section.append("Pattern detection:")
    section.append(format_pattern_summary(findings))
    return "\n".join(section)


def build_batch_prompt(
    pr_number: int,
    files: Sequence[Tuple[ChangedFile, FileFindings]],
    *,
    model: str,
    max_lines_per_file: int = BATCH_MAX_LINES_PER_FILE,
) -> ReviewPrompt:
    """Build one request covering every file, each truncated to ``max_lines_per_file``."""

    files_summary = "\n---\n".join(
        _batch_file_section(file, findings, max_lines_per_file) for file, findings in files
    )
    body = f"""Review the changes in Pull Request #{pr_number} as a whole.

{len(files)} file(s) changed:
{files_summary}

Write a **unified review** from these angles:

## 1. Code Quality
- Readability and maintainability
- Adherence to best practices
- Architectural consistency

## 2. Security Analysis
- Serious security vulnerabilities
- Data protection problems
- Authentication/authorization issues

## 3. Performance Optimization
- Algorithmic complexity problems
- Potential memory leaks
- Rendering performance (UI components)
- Database query efficiency

## 4. Overall Assessment

Response format:
### 🎯 Overall Summary
(main changes and purpose of the PR)

### ✅ What Went Well
(examples of well-written code)

### 🚨 Must Fix
(serious problems that must be resolved before merging)

### ⚠️ Recommended Improvements
(suggestions to improve quality)

### 📊 Risk Level
Overall risk: Low/Medium/High/Critical

Give concise, actionable feedback and ignore minor style issues."""

    return _make_prompt(
        SYSTEM_PERSONAS[ReviewSpecialization.UNIFIED],
        body,
        model=model,
        sampling=SAMPLING[ReviewSpecialization.UNIFIED],
    )


# ── PR-level summary ─────────────────────────────────────────────────────────


def build_summary_prompt(results: Sequence[ReviewResult], *, model: str) -> ReviewPrompt:
    """Build the cross-file summary request from successful per-file narratives."""

    reviews_text = "\n\n".join(
        f"File: {result.filename}\n{result.narrative}" for result in results if result.succeeded
    )
    body = f"""Based on the following individual file reviews, provide an overall summary of the Pull Request:

{reviews_text}

Please provide:
1. **Overall Assessment**: general quality of the PR and merge readiness
2. **Key Strengths**: main positives across all changes
3. **Critical Issues**: the most important problems to resolve (if any)
4. **Recommended Actions**: prioritized list of tasks
5. **Approval Recommendation**: Ready to merge / Minor changes needed / Major changes needed

Keep it concise and actionable."""

    return _make_prompt(SUMMARY_PERSONA, body, model=model, sampling=SUMMARY_SAMPLING)
