import asyncio

import httpx
import pytest

from careerlaunch.services.github_client import GitHubClient, extract_skills_from_repositories
from careerlaunch.utils.error_handlers import ExternalServiceError

BASE_URL = "https://github.test"


def _repo(name: str, **extra) -> dict:
    repo = {
        "name": name,
        "description": None,
        "html_url": f"https://github.test/octo/{name}",
        "clone_url": f"https://github.test/octo/{name}.git",
        "language": None,
        "stargazers_count": 0,
        "forks_count": 0,
        "watchers_count": 0,
        "size": 1,
        "topics": [],
        "license": None,
        "fork": False,
        "private": False,
        "owner": {"login": "octo"},
    }
    repo.update(extra)
    return repo


def _client(handler, token: str | None = None) -> GitHubClient:
    return GitHubClient(token, base_url=BASE_URL, timeout_s=5, transport=httpx.MockTransport(handler))


def test_headers_and_repository_query():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    asyncio.run(_client(handler, token="s3cret").list_repositories("octo", page=2, per_page=50))

    request = seen[0]
    assert request.url.path == "/users/octo/repos"
    assert request.headers["Authorization"] == "token s3cret"
    assert request.headers["User-Agent"] == "CareerLaunch-App"
    assert request.headers["Accept"] == "application/vnd.github.v3+json"
    params = dict(request.url.params)
    assert params == {"type": "all", "sort": "updated", "direction": "desc", "page": "2", "per_page": "50"}


def test_no_authorization_header_without_token(monkeypatch):
    from careerlaunch import config

    monkeypatch.setattr(config, "GITHUB_TOKEN", None)
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"login": "octo"})

    asyncio.run(_client(handler).get_profile("octo"))
    assert "Authorization" not in seen[0].headers


def test_http_error_raises_external_service_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Not Found"})

    with pytest.raises(ExternalServiceError) as exc:
        asyncio.run(_client(handler).get_profile("ghost"))
    assert exc.value.status_code == 502
    assert "404" in exc.value.message


def test_transport_error_raises_external_service_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ExternalServiceError):
        asyncio.run(_client(handler).get_profile("octo"))


def test_fetch_portfolio_paginates_and_aggregates_languages():
    pages = {
        1: [_repo("api", language="Python"), _repo("forked", fork=True)],
        2: [_repo("web", language="TypeScript")],
    }
    language_calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/users/octo":
            return httpx.Response(200, json={"login": "octo", "followers": 7, "public_repos": 3})
        if path == "/users/octo/repos":
            page = int(request.url.params["page"])
            return httpx.Response(200, json=pages.get(page, []))
        if path.endswith("/languages"):
            repo = path.split("/")[3]
            language_calls.append(repo)
            if repo == "web":
                return httpx.Response(500, json={"message": "boom"})
            return httpx.Response(200, json={"Python": 1200, "Shell": 30})
        return httpx.Response(404)

    snapshot = asyncio.run(_client(handler).fetch_portfolio("octo"))

    assert [r["name"] for r in snapshot.repositories] == ["api", "forked", "web"]
    # Forks are not inspected; a failing lookup only loses that repo's bytes.
    assert language_calls == ["api", "web"]
    assert snapshot.languages == {"Python": 1200, "Shell": 30}

    stats = snapshot.statistics()
    assert stats["total_repos"] == 2
    assert stats["followers"] == 7
    assert stats["languages"] == {"Python": 1200, "Shell": 30}


def test_fetch_portfolio_stops_at_max_pages():
    requested_pages = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/users/octo":
            return httpx.Response(200, json={"login": "octo"})
        if request.url.path == "/users/octo/repos":
            page = int(request.url.params["page"])
            requested_pages.append(page)
            return httpx.Response(200, json=[_repo(f"r{page}", fork=True)])
        return httpx.Response(200, json={})

    snapshot = asyncio.run(_client(handler).fetch_portfolio("octo", max_pages=3))
    assert requested_pages == [1, 2, 3]
    assert len(snapshot.repositories) == 3


def test_extract_skills_from_repositories():
    repos = [
        _repo("react-dashboard", language="TypeScript", description="Dashboard using Docker"),
        _repo("notes", language=None, topics=["kubernetes", "cooking"]),
    ]
    skills = extract_skills_from_repositories(repos)

    assert "typescript" in skills
    assert "react" in skills
    assert "docker" in skills
    assert "kubernetes" in skills
    assert "cooking" not in skills
    assert len(skills) == len(set(skills))
