"""
Tests for the command-line entry point.
"""

from pathlib import Path
from unittest.mock import patch

from pr_review import cli
from pr_review.github_client import GitHubAPIError


def _run(settings, github, llm, argv):
    with patch("pr_review.cli.get_settings", return_value=settings), \
            patch("pr_review.cli.GitHubClient", return_value=github), \
            patch("pr_review.cli.LLMClient", return_value=llm):
        return cli.main(argv)


def test_empty_review_exits_zero(settings_factory, github, llm, make_entry):
    settings = settings_factory()
    github.list_pull_request_files.return_value = [make_entry("README.md")]

    assert _run(settings, github, llm, ["general"]) == 0

    report = Path(settings.output_dir) / "review_results.md"
    assert report.read_text(encoding="utf-8") == (
        "## 🤖 AI Code Review\n\nNo reviewable files found in this pull request.\n"
    )
    github.aclose.assert_awaited_once()
    llm.aclose.assert_awaited_once()


def test_fetch_failure_exits_one(settings_factory, github, llm):
    github.list_pull_request_files.side_effect = GitHubAPIError("not found", 404)

    assert _run(settings_factory(), github, llm, ["security"]) == 1
    github.aclose.assert_awaited_once()
    llm.aclose.assert_awaited_once()


def test_missing_credentials_exit_one(settings_factory, github, llm):
    settings = settings_factory(github_token=None, llm_api_key=None)

    assert _run(settings, github, llm, ["performance"]) == 1
    github.list_pull_request_files.assert_not_awaited()


def test_flags_override_settings(settings_factory, tmp_path):
    args = cli.build_parser().parse_args(
        ["unified", "--pr-number", "99", "--repository", "acme/web", "--output-dir", str(tmp_path / "out"), "--no-annotate"]
    )

    settings = cli.apply_overrides(settings_factory(), args)

    assert settings.pr_number == 99
    assert settings.repository == "acme/web"
    assert settings.output_dir == tmp_path / "out"
    assert settings.annotate is False


def test_post_comment_flag_reaches_runner(settings_factory, github, llm, make_entry):
    github.list_pull_request_files.return_value = [make_entry("app.py", patch="+print('hi')")]

    assert _run(settings_factory(), github, llm, ["performance", "--post-comment"]) == 0
    github.create_issue_comment.assert_awaited_once()
