"""Command-line entry point for running a pull request review."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List

from pr_review.config import Settings, SettingsError, get_settings
from pr_review.github_client import GitHubClient
from pr_review.llm_client import LLMClient
from pr_review.logger import get_logger, log_failure
from pr_review.models.review import ReviewSpecialization
from pr_review.services.change_set import FetchFailure
from pr_review.services.review_runner import ReviewRunner

logger = get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pr-review",
        description="Review the changed files of a pull request with an LLM.",
    )
    parser.add_argument(
        "specialization",
        choices=[specialization.value for specialization in ReviewSpecialization],
        help="Review flavour to run",
    )
    parser.add_argument("--pr-number", type=int, help="Pull request number (default: $PR_NUMBER)")
    parser.add_argument("--repository", help="Repository as owner/name (default: $REPOSITORY)")
    parser.add_argument("--output-dir", type=Path, help="Directory for the report file")
    parser.add_argument(
        "--post-comment",
        action="store_true",
        help="Also post the report as a top-level PR comment",
    )
    parser.add_argument(
        "--no-annotate",
        action="store_true",
        help="Do not post inline annotations for high-severity files",
    )
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Layer command-line flags over environment-derived settings."""

    updates: Dict[str, Any] = {}
    if args.pr_number is not None:
        updates["pr_number"] = args.pr_number
    if args.repository:
        updates["repository"] = args.repository
    if args.output_dir is not None:
        updates["output_dir"] = args.output_dir
    if args.no_annotate:
        updates["annotate"] = False
    return settings.model_copy(update=updates) if updates else settings


async def run_review(settings: Settings, specialization: ReviewSpecialization, *, post_comment: bool) -> int:
    settings.require_review_target()
    credentials = settings.require_review_credentials()

    github = GitHubClient(
        token=credentials.github_token,
        base_url=settings.normalized_github_api_base_url,
    )
    try:
        llm = LLMClient(credentials.llm_api_key, base_url=settings.normalized_llm_api_base_url)
        try:
            runner = ReviewRunner(settings, github, llm, post_comment=post_comment)
            outcome = await runner.run(specialization)
        finally:
            await llm.aclose()
    finally:
        await github.aclose()

    logger.info(
        f"Review complete: {outcome.aggregate.files_analyzed} file(s) analyzed, "
        f"report at {outcome.report_path}"
    )
    return 0


def main(argv: List[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    specialization = ReviewSpecialization(args.specialization)

    try:
        settings = apply_overrides(get_settings(), args)
        return asyncio.run(run_review(settings, specialization, post_comment=args.post_comment))
    except SettingsError as exc:
        log_failure(logger, "Configuration incomplete", exc)
        return 1
    except FetchFailure as exc:
        log_failure(logger, f"Review aborted (status={exc.status_code})", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
