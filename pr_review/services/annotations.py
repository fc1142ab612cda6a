"""Inline PR annotations for high-severity file reviews."""

from __future__ import annotations

from typing import Iterable, Sequence

from pr_review.config import DEFAULT_SEVERITY_KEYWORDS
from pr_review.github_client import GitHubAPIError, GitHubClient
from pr_review.logger import get_logger, log_failure, log_with_context
from pr_review.models.review import ReviewResult
from pr_review.services.analysis import is_high_severity

logger = get_logger()

ANNOTATION_LINE = 1
ANNOTATION_SIDE = "RIGHT"
ANNOTATION_BODY = (
    "🚨 **AI Review Warning**\n\n"
    "Potential issues were detected. Please check the AI analysis for this file."
)


async def publish_annotations(
    client: GitHubClient,
    repository: str,
    pr_number: int,
    results: Sequence[ReviewResult],
    keywords: Iterable[str] = DEFAULT_SEVERITY_KEYWORDS,
) -> int:
    """Post one inline warning per high-severity file and return how many landed.

    Comments are anchored at the first line of each file on the head commit.
    Nothing here raises; every publishing failure is logged and skipped.
    """

    keywords = tuple(keywords)
    flagged = [
        result
        for result in results
        if result.succeeded and is_high_severity(result.narrative, keywords)
    ]
    ctx_logger = log_with_context(logger, repository=repository, pr_number=pr_number)
    if not flagged:
        ctx_logger.info("No high-severity reviews; skipping inline annotations")
        return 0

    try:
        pull_request = await client.get_pull_request(full_name=repository, pull_number=pr_number)
    except (GitHubAPIError, ValueError) as exc:
        log_failure(logger, "Could not resolve PR head commit; skipping annotations", exc,
                    repository=repository, pr_number=pr_number)
        return 0

    head = pull_request.get("head") if isinstance(pull_request, dict) else None
    head_sha = head.get("sha") if isinstance(head, dict) else None
    if not isinstance(head_sha, str) or not head_sha:
        ctx_logger.warning("Pull request payload has no head SHA; skipping annotations")
        return 0

    posted = 0
    for result in flagged:
        try:
            await client.create_review_comment(
                full_name=repository,
                pull_number=pr_number,
                commit_id=head_sha,
                path=result.filename,
                line=ANNOTATION_LINE,
                body=ANNOTATION_BODY,
                side=ANNOTATION_SIDE,
            )
        except (GitHubAPIError, ValueError) as exc:
            log_failure(logger, f"Could not post inline comment on {result.filename}", exc,
                        repository=repository, filename=result.filename)
            continue
        posted += 1

    ctx_logger.info(f"Posted {posted} inline annotation(s) to {head_sha[:8]}")
    return posted
