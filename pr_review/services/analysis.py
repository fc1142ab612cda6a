"""Drive LLM calls for a review and roll the outcomes up."""

from __future__ import annotations

from typing import Iterable, List, Mapping, Sequence

from pr_review.config import DEFAULT_SEVERITY_KEYWORDS
from pr_review.llm_client import LLMAPIError, LLMClient
from pr_review.logger import get_logger, log_failure, log_timing, log_with_context
from pr_review.models.review import (
    AggregateOutcome,
    ChangedFile,
    FileFindings,
    FindingCategory,
    ReviewResult,
    ReviewStatus,
)
from pr_review.services.prompts import ReviewPrompt, build_summary_prompt

logger = get_logger()

SUMMARY_FALLBACK = "Unable to generate summary due to an error."


def is_high_severity(text: str | None, keywords: Iterable[str] = DEFAULT_SEVERITY_KEYWORDS) -> bool:
    """Literal, case-normalized keyword scan of a narrative.

    Negations are not understood: "not critical" still counts as critical.
    """

    if not text:
        return False
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


async def review_files(
    llm: LLMClient,
    files: Sequence[ChangedFile],
    prompts: Sequence[ReviewPrompt],
) -> List[ReviewResult]:
    """Review each file with its own request, one at a time, in fetch order."""

    if len(files) != len(prompts):
        raise ValueError("Each file needs exactly one prompt.")

    results: List[ReviewResult] = []
    for position, (file, prompt) in enumerate(zip(files, prompts), start=1):
        if prompt.filename is not None and prompt.filename != file.filename:
            raise ValueError(f"Prompt for {prompt.filename} does not match file {file.filename}.")
        ctx_logger = log_with_context(logger, filename=file.filename)
        ctx_logger.info(f"Reviewing file {position}/{len(files)}: {file.filename}")
        ctx_logger.debug(f"Prompt length: {len(prompt.user_content)} chars")
        try:
            with log_timing(logger, "review_file", filename=file.filename, position=position):
                narrative = await llm.complete(prompt.messages, prompt.params)
        except LLMAPIError as exc:
            log_failure(logger, f"Review failed for {file.filename}", exc, filename=file.filename)
            results.append(
                ReviewResult(
                    filename=file.filename,
                    language=file.language,
                    status=ReviewStatus.ERROR,
                    error=str(exc),
                )
            )
            continue
        results.append(
            ReviewResult(
                filename=file.filename,
                language=file.language,
                status=ReviewStatus.SUCCESS,
                narrative=narrative,
            )
        )
    return results


async def review_batch(
    llm: LLMClient,
    prompt: ReviewPrompt,
    files: Sequence[ChangedFile],
) -> List[ReviewResult]:
    """Review every file with a single request and fan the outcome out per file."""

    ctx_logger = log_with_context(logger, files=len(files))
    ctx_logger.info(f"Sending a single batched review request for {len(files)} file(s)")
    try:
        ctx_logger.debug(f"Prompt length: {len(prompt.user_content)} chars")
        with log_timing(logger, "review_batch", files=len(files)):
            narrative = await llm.complete(prompt.messages, prompt.params)
    except LLMAPIError as exc:
        log_failure(logger, "Batched review failed", exc)
        return [
            ReviewResult(
                filename=file.filename,
                language=file.language,
                status=ReviewStatus.ERROR,
                error=str(exc),
            )
            for file in files
        ]
    return [
        ReviewResult(
            filename=file.filename,
            language=file.language,
            status=ReviewStatus.SUCCESS,
            narrative=narrative,
        )
        for file in files
    ]


async def summarize_results(llm: LLMClient, results: Sequence[ReviewResult], *, model: str) -> str | None:
    """Ask for a PR-level summary of the successful per-file narratives."""

    if not any(result.succeeded for result in results):
        logger.info("No successful file reviews; skipping overall summary")
        return None

    prompt = build_summary_prompt(results, model=model)
    try:
        with log_timing(logger, "summarize_results"):
            return await llm.complete(prompt.messages, prompt.params)
    except LLMAPIError as exc:
        log_failure(logger, "Overall summary generation failed", exc)
        return SUMMARY_FALLBACK


def build_aggregate(
    results: Sequence[ReviewResult],
    findings: Mapping[str, FileFindings],
    keywords: Iterable[str] = DEFAULT_SEVERITY_KEYWORDS,
) -> AggregateOutcome:
    keywords = tuple(keywords)
    totals = {category: 0 for category in FindingCategory}
    for file_findings in findings.values():
        for category, count in file_findings.counts().items():
            totals[category] += count

    high_severity = False
    for result in results:
        if result.succeeded:
            high_severity = high_severity or is_high_severity(result.narrative, keywords)

    succeeded = sum(1 for result in results if result.succeeded)
    return AggregateOutcome(
        files_analyzed=len(results),
        high_severity=high_severity,
        succeeded=succeeded,
        failed=len(results) - succeeded,
        category_totals=totals,
    )
