"""
Tests for prompt construction.
"""

import pytest

from pr_review.models.review import (
    ChangedFile,
    FileFindings,
    ReviewResult,
    ReviewSpecialization,
    ReviewStatus,
)
from pr_review.services.patterns import scan_patch
from pr_review.services.prompts import (
    NO_PATCH_PLACEHOLDER,
    SYSTEM_PERSONAS,
    build_batch_prompt,
    build_file_prompt,
    build_summary_prompt,
    truncated_added_lines,
)


def _file(filename="auth.ts", patch="@@ -0,0 +1 @@\n+const password = req.body.password;", **kwargs):
    values = {
        "status": "added",
        "additions": 1,
        "deletions": 0,
        "language": "TypeScript",
    }
    values.update(kwargs)
    return ChangedFile(filename=filename, patch=patch, **values)


def _many_lines_patch(count):
    return "@@ -0,0 +1,{0} @@\n".format(count) + "\n".join(f"+line-{index}" for index in range(count))


def test_security_prompt_carries_counts_and_sampling():
    file = _file()
    findings = scan_patch(file.patch, file.filename)

    prompt = build_file_prompt(ReviewSpecialization.SECURITY, file, findings, model="gpt-test")

    assert prompt.messages[0].role == "system"
    assert prompt.messages[0].content == SYSTEM_PERSONAS[ReviewSpecialization.SECURITY]
    assert "File: auth.ts" in prompt.user_content
    assert "Potential secrets: 1 occurrences" in prompt.user_content
    assert "+const password = req.body.password;" in prompt.user_content
    assert prompt.params.model == "gpt-test"
    assert prompt.params.temperature == 0.2
    assert prompt.params.max_tokens == 1500
    assert prompt.filename == "auth.ts"


def test_general_prompt_uses_placeholder_without_patch():
    file = _file(patch=None)

    prompt = build_file_prompt(ReviewSpecialization.GENERAL, file, FileFindings(), model="gpt-test")

    assert NO_PATCH_PLACEHOLDER in prompt.user_content
    assert "Changes: +1 -0" in prompt.user_content
    assert prompt.params.temperature == 0.3


def test_performance_prompt_lists_initial_findings():
    file = _file("List.tsx", patch="+const [a, b] = useState([]);", language="TypeScript React")
    prompt = build_file_prompt(
        ReviewSpecialization.PERFORMANCE, file, scan_patch(file.patch, file.filename), model="gpt-test"
    )
    assert "UI render inefficiencies: 1" in prompt.user_content


def test_file_prompt_rejects_batched_specialization():
    with pytest.raises(ValueError):
        build_file_prompt(ReviewSpecialization.UNIFIED, _file(), FileFindings(), model="gpt-test")


def test_truncated_added_lines_keeps_limit_and_total():
    lines, total = truncated_added_lines(_many_lines_patch(150), 100)

    assert total == 150
    assert len(lines) == 100
    assert lines[0] == "+line-0"
    assert lines[-1] == "+line-99"


def test_batch_prompt_truncates_each_file_to_limit():
    big = _file("big.py", patch=_many_lines_patch(150), additions=150, language="Python")
    small = _file("small.ts", patch=_many_lines_patch(3), additions=3)

    prompt = build_batch_prompt(
        42,
        [(big, FileFindings()), (small, FileFindings())],
        model="gpt-batch",
        max_lines_per_file=100,
    )

    content = prompt.user_content
    assert "Pull Request #42" in content
    assert content.count("+line-") == 103
    assert "(50 more added lines not shown)" in content
    assert "📁 **big.py** (150+ 0-)" in content
    assert prompt.filename is None
    assert prompt.params.max_tokens == 2500


def test_summary_prompt_only_includes_successful_reviews():
    results = [
        ReviewResult("a.ts", "TypeScript", ReviewStatus.SUCCESS, narrative="Looks good."),
        ReviewResult("b.ts", "TypeScript", ReviewStatus.ERROR, error="timeout"),
    ]

    prompt = build_summary_prompt(results, model="gpt-test")

    assert "File: a.ts\nLooks good." in prompt.user_content
    assert "b.ts" not in prompt.user_content
    assert prompt.params.max_tokens == 1000
