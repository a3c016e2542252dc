from __future__ import annotations

import json

import httpx
import pytest
from delete_artifacts.github.http import HttpRetriesExceeded, HttpStatusError, make_http_client
from delete_artifacts.github.repository import ArtifactApiError, GitHubArtifactRepository


def _artifact_json(i: int, name: str = "dist", size: int = 1024) -> dict:
    return {
        "id": i,
        "node_id": f"MDg6QXJ0aWZhY3Q{i}",
        "name": name,
        "size_in_bytes": size,
        "url": f"https://api.github.com/repos/octo/repo/actions/artifacts/{i}",
        "archive_download_url": f"https://api.github.com/repos/octo/repo/actions/artifacts/{i}/zip",
        "expired": False,
        "created_at": "2024-05-01T10:00:00Z",
        "updated_at": "2024-05-01T10:00:05Z",
        "expires_at": "2024-07-30T10:00:00Z",
        "workflow_run": {"id": 42, "head_branch": "main", "head_sha": "abc123"},
    }


def _client(handler) -> httpx.AsyncClient:
    return make_http_client(
        base_url="https://api.github.com/",
        token="ghp_test",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_list_artifacts_request_and_parse() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = {"total_count": 2, "artifacts": [_artifact_json(1), _artifact_json(2, "logs", 5)]}
        return httpx.Response(200, json=body)

    async with _client(handler) as client:
        repo = GitHubArtifactRepository(client)
        items = await repo.list_artifacts("octo", "repo", page=3, per_page=100)

    assert [a.id for a in items] == [1, 2]
    assert items[1].name == "logs" and items[1].size_in_bytes == 5
    assert items[0].created_at is not None and items[0].created_at.tzinfo is not None
    assert items[0].workflow_run is not None and items[0].workflow_run.id == 42

    req = seen[0]
    assert req.method == "GET"
    assert req.url.path == "/repos/octo/repo/actions/artifacts"
    assert req.url.params["page"] == "3"
    assert req.url.params["per_page"] == "100"
    assert req.headers["Authorization"] == "Bearer ghp_test"
    assert req.headers["Accept"] == "application/vnd.github+json"
    assert req.headers["X-GitHub-Api-Version"] == "2022-11-28"


@pytest.mark.asyncio
async def test_list_artifacts_for_run_uses_run_path() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"total_count": 0, "artifacts": []})

    async with _client(handler) as client:
        items = await GitHubArtifactRepository(client).list_artifacts_for_run(
            "octo", "repo", 987, page=1, per_page=50
        )

    assert items == []
    assert paths == ["/repos/octo/repo/actions/runs/987/artifacts"]


@pytest.mark.asyncio
async def test_delete_artifact_expects_204() -> None:
    calls: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        return httpx.Response(204)

    async with _client(handler) as client:
        await GitHubArtifactRepository(client).delete_artifact("octo", "repo", 55)

    assert calls == [("DELETE", "/repos/octo/repo/actions/artifacts/55")]


@pytest.mark.asyncio
async def test_retryable_status_is_retried() -> None:
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        if attempts["n"] == 1:
            return httpx.Response(502, text="bad gateway")
        return httpx.Response(200, json={"total_count": 1, "artifacts": [_artifact_json(9)]})

    async with _client(handler) as client:
        items = await GitHubArtifactRepository(client, max_attempts=3).list_artifacts(
            "octo", "repo", page=1, per_page=100
        )

    assert attempts["n"] == 2
    assert [a.id for a in items] == [9]


@pytest.mark.asyncio
async def test_retries_exhausted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    async with _client(handler) as client:
        with pytest.raises(HttpRetriesExceeded) as exc:
            await GitHubArtifactRepository(client, max_attempts=1).list_artifacts(
                "octo", "repo", page=1, per_page=100
            )

    assert exc.value.attempts == 1


@pytest.mark.asyncio
async def test_non_retryable_status_raises_immediately() -> None:
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        return httpx.Response(404, json={"message": "Not Found"})

    async with _client(handler) as client:
        with pytest.raises(HttpStatusError) as exc:
            await GitHubArtifactRepository(client).delete_artifact("octo", "repo", 1)

    assert attempts["n"] == 1
    assert exc.value.status_code == 404
    assert "Not Found" in str(exc.value)


@pytest.mark.asyncio
async def test_unexpected_listing_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps({"artifacts": [{"name": "no id"}]}))

    async with _client(handler) as client:
        with pytest.raises(ArtifactApiError):
            await GitHubArtifactRepository(client).list_artifacts(
                "octo", "repo", page=1, per_page=100
            )
