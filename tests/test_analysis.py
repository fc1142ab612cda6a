"""
Tests for the analysis orchestrator.
"""

import pytest
from loguru import logger as loguru_logger

from pr_review.llm_client import LLMAPIError
from pr_review.models.review import (
    ChangedFile,
    FileFindings,
    Finding,
    FindingCategory,
    ReviewResult,
    ReviewSpecialization,
    ReviewStatus,
)
from pr_review.services.analysis import (
    SUMMARY_FALLBACK,
    build_aggregate,
    is_high_severity,
    review_batch,
    review_files,
    summarize_results,
)
from pr_review.services.prompts import build_batch_prompt, build_file_prompt


def _file(filename):
    return ChangedFile(
        filename=filename,
        status="modified",
        additions=2,
        deletions=0,
        language="TypeScript",
        patch="+const a = 1;\n+const b = 2;",
    )


def _prompts(files):
    return [
        build_file_prompt(ReviewSpecialization.GENERAL, file, FileFindings(), model="gpt-test")
        for file in files
    ]


@pytest.mark.asyncio
async def test_review_files_records_failure_and_keeps_order(llm):
    files = [_file("f.ts"), _file("g.ts")]
    llm.complete.side_effect = [LLMAPIError("service unavailable", 503), "Looks good."]

    results = await review_files(llm, files, _prompts(files))

    assert [result.filename for result in results] == ["f.ts", "g.ts"]
    assert results[0].status is ReviewStatus.ERROR
    assert "service unavailable" in results[0].error
    assert results[1].status is ReviewStatus.SUCCESS
    assert results[1].narrative == "Looks good."
    assert llm.complete.await_count == 2


@pytest.mark.asyncio
async def test_review_files_requires_one_prompt_per_file(llm):
    with pytest.raises(ValueError):
        await review_files(llm, [_file("a.ts")], [])


@pytest.mark.asyncio
async def test_review_batch_fans_out_single_call(llm):
    files = [_file("a.ts"), _file("b.ts")]
    llm.complete.return_value = "### 🎯 Overall Summary\nFine."
    prompt = build_batch_prompt(3, [(file, FileFindings()) for file in files], model="gpt-batch")

    results = await review_batch(llm, prompt, files)

    llm.complete.assert_awaited_once()
    assert [result.filename for result in results] == ["a.ts", "b.ts"]
    assert all(result.narrative == "### 🎯 Overall Summary\nFine." for result in results)


@pytest.mark.asyncio
async def test_review_batch_failure_marks_every_file(llm):
    files = [_file("a.ts"), _file("b.ts")]
    llm.complete.side_effect = LLMAPIError("quota exceeded", 429)
    prompt = build_batch_prompt(3, [(file, FileFindings()) for file in files], model="gpt-batch")

    results = await review_batch(llm, prompt, files)

    assert all(result.status is ReviewStatus.ERROR for result in results)
    assert all(result.error == "quota exceeded" for result in results)


@pytest.mark.asyncio
async def test_summarize_results_skips_when_nothing_succeeded(llm):
    results = [ReviewResult("a.ts", "TypeScript", ReviewStatus.ERROR, error="boom")]

    assert await summarize_results(llm, results, model="gpt-test") is None
    llm.complete.assert_not_awaited()


@pytest.mark.asyncio
async def test_summarize_results_falls_back_on_error(llm):
    llm.complete.side_effect = LLMAPIError("boom", 500)
    results = [ReviewResult("a.ts", "TypeScript", ReviewStatus.SUCCESS, narrative="ok")]

    assert await summarize_results(llm, results, model="gpt-test") == SUMMARY_FALLBACK


def test_is_high_severity_keyword_scan():
    assert is_high_severity("Risk Level: Critical")
    assert is_high_severity("This is a HIGH RISK change")
    assert is_high_severity("🔴 must fix")
    assert is_high_severity("This is not critical")
    assert not is_high_severity("Risk Level: Low")
    assert not is_high_severity(None)
    assert is_high_severity("Severe problem", keywords=("severe",))


def test_build_aggregate_counts_findings_and_severity():
    results = [
        ReviewResult("a.ts", "TypeScript", ReviewStatus.SUCCESS, narrative="Risk Level: Critical"),
        ReviewResult("b.ts", "TypeScript", ReviewStatus.ERROR, error="boom"),
    ]
    findings = {
        "a.ts": FileFindings(
            matches=(
                Finding(FindingCategory.SECRET_EXPOSURE, 1, "password = x", "secret.password"),
                Finding(FindingCategory.LOOP_CONSTRUCT, 2, "[...a]", "loop.spread"),
            )
        ),
        "b.ts": FileFindings(),
    }

    aggregate = build_aggregate(results, findings)

    assert aggregate.files_analyzed == 2
    assert aggregate.succeeded == 1
    assert aggregate.failed == 1
    assert aggregate.high_severity is True
    assert aggregate.category_totals[FindingCategory.SECRET_EXPOSURE] == 1
    assert aggregate.category_totals[FindingCategory.QUERY_PATTERN] == 0
    assert not aggregate.all_failed


def test_build_aggregate_ignores_keywords_in_failed_results():
    results = [ReviewResult("a.ts", "TypeScript", ReviewStatus.ERROR, error="critical failure")]

    aggregate = build_aggregate(results, {})

    assert aggregate.high_severity is False
    assert aggregate.all_failed


@pytest.fixture
def log_records():
    records = []
    sink_id = loguru_logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    loguru_logger.remove(sink_id)


@pytest.mark.asyncio
async def test_review_files_times_each_file_with_its_name(llm, log_records):
    files = [_file("f.ts"), _file("g.ts")]

    await review_files(llm, files, _prompts(files))

    timed = [
        record["extra"]
        for record in log_records
        if record["message"].startswith("Completed review_file")
    ]
    assert [extra["filename"] for extra in timed] == ["f.ts", "g.ts"]
    assert [extra["position"] for extra in timed] == [1, 2]
    assert any(record["message"].startswith("Prompt length:") for record in log_records)


@pytest.mark.asyncio
async def test_review_files_rejects_prompt_for_another_file(llm):
    files = [_file("f.ts"), _file("g.ts")]

    with pytest.raises(ValueError, match="does not match"):
        await review_files(llm, files, list(reversed(_prompts(files))))

    llm.complete.assert_not_awaited()
