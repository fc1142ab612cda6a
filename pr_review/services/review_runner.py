"""Run one review specialization end to end against a pull request."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from pr_review.config import Settings
from pr_review.github_client import GitHubAPIError, GitHubClient
from pr_review.llm_client import LLMClient
from pr_review.logger import get_logger, log_failure, log_success, log_timing, log_with_context
from pr_review.models.review import (
    AggregateOutcome,
    ChangedFile,
    FileFindings,
    ReviewResult,
    ReviewSpecialization,
    ReviewTarget,
)
from pr_review.services.analysis import (
    build_aggregate,
    review_batch,
    review_files,
    summarize_results,
)
from pr_review.services.annotations import publish_annotations
from pr_review.services.change_set import FetchFailure, FetchLimits, fetch_changed_files
from pr_review.services.patterns import scan_patch
from pr_review.services.prompts import build_batch_prompt, build_file_prompt
from pr_review.services.report import REPORT_FILENAMES, render_empty_report, render_report

logger = get_logger()


@dataclass(frozen=True, slots=True)
class ReviewRunOutcome:
    report_path: Path
    markdown: str
    aggregate: AggregateOutcome


class ReviewRunner:
    """Wire the pipeline stages together for a single review run.

    The runner never creates or closes clients; whoever builds it owns them.
    """

    def __init__(
        self,
        settings: Settings,
        github: GitHubClient,
        llm: LLMClient,
        *,
        post_comment: bool = False,
    ) -> None:
        self._settings = settings
        self._github = github
        self._llm = llm
        self._post_comment = post_comment

    def _model_for(self, specialization: ReviewSpecialization) -> str:
        if specialization.is_batched:
            return self._settings.unified_review_model
        return self._settings.review_model

    async def run(self, specialization: ReviewSpecialization) -> ReviewRunOutcome:
        repository, pr_number = self._settings.require_review_target()
        target = ReviewTarget(repository=repository, pr_number=pr_number, model=self._model_for(specialization))
        ctx_logger = log_with_context(logger, repository=repository, pr_number=pr_number)
        ctx_logger.info(f"=== RUNNER: Starting {specialization.value} review for PR #{pr_number} ===")

        limits = FetchLimits(
            max_files=self._settings.max_files_per_review,
            large_file_threshold=self._settings.large_file_threshold,
        )
        try:
            files = await fetch_changed_files(self._github, repository, pr_number, limits=limits)
        except FetchFailure as exc:
            log_failure(logger, "Could not fetch changed files", exc, repository=repository, pr_number=pr_number)
            raise

        if not files:
            ctx_logger.info("No reviewable files; writing empty report")
            markdown = render_empty_report(specialization)
            aggregate = AggregateOutcome(files_analyzed=0, high_severity=False, succeeded=0, failed=0)
            report_path = self._write_report(specialization, markdown)
            await self._maybe_post_report(target, markdown)
            return ReviewRunOutcome(report_path=report_path, markdown=markdown, aggregate=aggregate)

        with log_timing(ctx_logger, "scan_patterns"):
            findings: Dict[str, FileFindings] = {
                file.filename: scan_patch(file.patch, file.filename) for file in files
            }

        summary: str | None = None
        if specialization.is_batched:
            results = await self._review_batched(target, files, findings)
        else:
            results = await self._review_per_file(specialization, target, files, findings)
            if specialization is ReviewSpecialization.GENERAL:
                summary = await summarize_results(self._llm, results, model=target.model)

        aggregate = build_aggregate(results, findings, self._settings.severity_keywords)
        ctx_logger.info(
            f"Analysis finished (succeeded={aggregate.succeeded}, failed={aggregate.failed}, "
            f"high_severity={aggregate.high_severity})"
        )

        markdown = render_report(specialization, target, files, results, findings, aggregate, summary)
        report_path = self._write_report(specialization, markdown)

        if not specialization.is_batched and self._settings.annotate:
            with log_timing(logger, "publish_annotations", repository=repository, pr_number=pr_number):
                await publish_annotations(
                    self._github, repository, pr_number, results, self._settings.severity_keywords
                )

        await self._maybe_post_report(target, markdown)
        log_success(logger, f"{specialization.value} review written to {report_path}",
                    repository=repository, pr_number=pr_number)
        return ReviewRunOutcome(report_path=report_path, markdown=markdown, aggregate=aggregate)

    async def _review_per_file(
        self,
        specialization: ReviewSpecialization,
        target: ReviewTarget,
        files: List[ChangedFile],
        findings: Dict[str, FileFindings],
    ) -> List[ReviewResult]:
        prompts = [
            build_file_prompt(specialization, file, findings[file.filename], model=target.model)
            for file in files
        ]
        return await review_files(self._llm, files, prompts)

    async def _review_batched(
        self,
        target: ReviewTarget,
        files: List[ChangedFile],
        findings: Dict[str, FileFindings],
    ) -> List[ReviewResult]:
        prompt = build_batch_prompt(
            target.pr_number,
            [(file, findings[file.filename]) for file in files],
            model=target.model,
        )
        return await review_batch(self._llm, prompt, files)

    def _write_report(self, specialization: ReviewSpecialization, markdown: str) -> Path:
        output_dir = Path(self._settings.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        report_path = output_dir / REPORT_FILENAMES[specialization]
        report_path.write_text(markdown, encoding="utf-8")
        logger.info(f"Report saved to {report_path}")
        return report_path

    async def _maybe_post_report(self, target: ReviewTarget, markdown: str) -> None:
        if not self._post_comment:
            return
        try:
            await self._github.create_issue_comment(
                full_name=target.repository, pull_number=target.pr_number, body=markdown
            )
        except (GitHubAPIError, ValueError) as exc:
            # The report file is already written; a failed comment doesn't fail the run.
            log_failure(logger, "Failed to post review report comment", exc,
                        repository=target.repository, pr_number=target.pr_number)
            return
        logger.info(f"Posted review report to PR #{target.pr_number}")
