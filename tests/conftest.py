import pytest
from unittest.mock import AsyncMock

from pr_review.config import Settings
from pr_review.github_client import GitHubClient
from pr_review.llm_client import LLMClient


@pytest.fixture
def make_entry():
    """Build a GitHub ``pulls/{n}/files`` entry."""

    def _make(
        filename,
        *,
        status="modified",
        additions=1,
        deletions=0,
        patch="@@ -1 +1 @@\n+value = 1",
    ):
        entry = {
            "filename": filename,
            "status": status,
            "additions": additions,
            "deletions": deletions,
        }
        if patch is not None:
            entry["patch"] = patch
        return entry

    return _make


@pytest.fixture
def settings_factory(tmp_path):
    def _factory(**overrides):
        values = {
            "repository": "octo/app",
            "pr_number": 7,
            "github_token": "gh-token",
            "llm_api_key": "llm-key",
            "output_dir": tmp_path,
            "annotate": True,
        }
        values.update(overrides)
        return Settings(**values)

    return _factory


@pytest.fixture
def github():
    client = AsyncMock(spec=GitHubClient)
    client.list_pull_request_files.return_value = []
    client.get_pull_request.return_value = {"number": 7, "head": {"sha": "abc1234567890"}}
    client.create_review_comment.return_value = {"id": 1}
    client.create_issue_comment.return_value = {"id": 2}
    return client


@pytest.fixture
def llm():
    client = AsyncMock(spec=LLMClient)
    client.complete.return_value = "Risk Level: Low. Nothing notable."
    return client
