"""
Tests for the GitHub REST client.
"""

import json

import httpx
import pytest

from pr_review.github_client import FILES_PAGE_SIZE, GitHubAPIError, GitHubClient

BASE_URL = "https://api.github.test"


def _client(handler):
    transport = httpx.MockTransport(handler)
    return GitHubClient(token="gh-token", client=httpx.AsyncClient(base_url=BASE_URL, transport=transport))


@pytest.mark.asyncio
async def test_list_pull_request_files_follows_pages():
    pages = []

    def handler(request):
        assert request.headers["Authorization"] == "Bearer gh-token"
        page = int(request.url.params["page"])
        pages.append(page)
        count = FILES_PAGE_SIZE if page == 1 else 5
        return httpx.Response(200, json=[{"filename": f"f{page}-{i}.py"} for i in range(count)])

    client = _client(handler)
    files = await client.list_pull_request_files(full_name="octo/app", pull_number=7)
    await client.aclose()

    assert pages == [1, 2]
    assert len(files) == FILES_PAGE_SIZE + 5
    assert files[0]["filename"] == "f1-0.py"


@pytest.mark.asyncio
async def test_error_status_raises_with_body():
    def handler(request):
        return httpx.Response(404, json={"message": "Not Found"})

    client = _client(handler)
    with pytest.raises(GitHubAPIError) as exc_info:
        await client.get_pull_request(full_name="octo/app", pull_number=7)

    assert exc_info.value.status_code == 404
    assert exc_info.value.response_body == {"message": "Not Found"}


@pytest.mark.asyncio
async def test_transport_error_maps_to_status_zero():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(GitHubAPIError) as exc_info:
        await client.list_pull_request_files(full_name="octo/app", pull_number=7)

    assert exc_info.value.status_code == 0


@pytest.mark.asyncio
async def test_create_review_comment_payload():
    captured = {}

    def handler(request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": 11})

    client = _client(handler)
    response = await client.create_review_comment(
        full_name="octo/app",
        pull_number=7,
        commit_id="abc123",
        path="auth.ts",
        line=1,
        body="warning",
    )

    assert response == {"id": 11}
    assert captured["path"] == "/repos/octo/app/pulls/7/comments"
    assert captured["body"] == {
        "body": "warning",
        "commit_id": "abc123",
        "path": "auth.ts",
        "line": 1,
        "side": "RIGHT",
    }


@pytest.mark.asyncio
async def test_create_issue_comment_targets_issue_endpoint():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["path"] = request.url.path
        return httpx.Response(201, json={"id": 3})

    client = _client(handler)
    await client.create_issue_comment(full_name="octo/app", pull_number=7, body="report")

    assert captured == {"method": "POST", "path": "/repos/octo/app/issues/7/comments"}


@pytest.mark.asyncio
async def test_invalid_full_name_is_rejected():
    client = _client(lambda request: httpx.Response(200, json=[]))
    with pytest.raises(ValueError):
        await client.list_pull_request_files(full_name="no-slash", pull_number=1)


@pytest.mark.asyncio
async def test_non_json_success_body_raises_api_error():
    client = _client(lambda request: httpx.Response(201, content=b"<html>created</html>"))

    with pytest.raises(GitHubAPIError) as exc_info:
        await client.create_issue_comment(full_name="octo/app", pull_number=7, body="report")

    assert exc_info.value.status_code == 201
    assert exc_info.value.response_body == "<html>created</html>"


@pytest.mark.asyncio
async def test_empty_success_body_decodes_to_empty_object():
    client = _client(lambda request: httpx.Response(201, content=b""))

    assert await client.create_review_comment(
        full_name="octo/app", pull_number=7, commit_id="abc", path="a.ts", line=1, body="x"
    ) == {}


@pytest.mark.asyncio
async def test_pull_request_must_be_an_object():
    client = _client(lambda request: httpx.Response(200, json=["unexpected"]))

    with pytest.raises(GitHubAPIError):
        await client.get_pull_request(full_name="octo/app", pull_number=7)


@pytest.mark.asyncio
async def test_non_json_file_listing_raises_api_error():
    client = _client(lambda request: httpx.Response(200, content=b"oops"))

    with pytest.raises(GitHubAPIError):
        await client.list_pull_request_files(full_name="octo/app", pull_number=7)
