import asyncio
import json

import httpx
import pytest

from careerlaunch.models.portfolio import Portfolio
from careerlaunch.models.project import Project
from careerlaunch.models.student import Student
from careerlaunch.services import portfolio_sync
from careerlaunch.services.github_client import GitHubClient
from careerlaunch.utils.error_handlers import BadRequestError

BASE_URL = "https://github.test"


def _repo(name: str, **extra) -> dict:
    repo = {
        "name": name,
        "description": f"{name} project",
        "html_url": f"https://github.test/octo/{name}",
        "clone_url": f"https://github.test/octo/{name}.git",
        "language": "Python",
        "stargazers_count": 3,
        "forks_count": 1,
        "watchers_count": 3,
        "size": 120,
        "topics": [],
        "license": {"key": "mit", "name": "MIT License"},
        "fork": False,
        "private": False,
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2025-06-01T12:00:00Z",
        "owner": {"login": "octo"},
    }
    repo.update(extra)
    return repo


class FakeGitHub:
    """Mutable upstream state served through httpx.MockTransport."""

    def __init__(self, repos: list[dict]):
        self.repos = repos
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(503, json={"message": "Service Unavailable"})
        path = request.url.path
        if path == "/users/octo":
            return httpx.Response(200, json={"login": "octo", "followers": 11, "public_repos": len(self.repos)})
        if path == "/users/octo/repos":
            page = int(request.url.params["page"])
            return httpx.Response(200, json=self.repos if page == 1 else [])
        if path.endswith("/languages"):
            return httpx.Response(200, json={"Python": 1000, "Dockerfile": 20})
        return httpx.Response(404, json={"message": "Not Found"})

    def client(self, access_token: str | None = None) -> GitHubClient:
        return GitHubClient(access_token, base_url=BASE_URL, transport=httpx.MockTransport(self.handler))


@pytest.fixture()
def fake_github(monkeypatch) -> FakeGitHub:
    fake = FakeGitHub(
        [
            _repo("flask-api", topics=["flask", "rest-api"]),
            _repo("dotfiles", language="Shell", description=None),
            _repo("someone-elses", fork=True),
        ]
    )
    monkeypatch.setattr(portfolio_sync, "GitHubClient", fake.client)
    return fake


@pytest.fixture()
def github_portfolio(client, student) -> dict:
    r = client.post(
        "/portfolios",
        headers=student["headers"],
        json={"platform": "github", "profile_url": "https://github.com/octo", "username": "octo"},
    )
    assert r.status_code == 201, r.text
    return r.json()


def _sync(client, student, portfolio_id, **body):
    return client.post(f"/portfolios/{portfolio_id}/sync", headers=student["headers"], json=body)


def test_sync_imports_projects_and_merges_skills(client, student, github_portfolio, fake_github, db_session):
    r = _sync(client, student, github_portfolio["id"], username="octo")
    assert r.status_code == 200, r.text
    result = r.json()
    assert result["projects_imported"] == 2
    assert result["projects_updated"] == 0
    assert "flask" in result["skills_found"]
    assert "python" in result["skills_found"]

    projects = db_session.query(Project).order_by(Project.title).all()
    assert [p.title for p in projects] == ["dotfiles", "flask-api"]
    assert projects[1].repository_url == "https://github.test/octo/flask-api.git"
    assert projects[1].license == "MIT License"
    assert json.loads(projects[1].topics) == ["flask", "rest-api"]

    portfolio = db_session.query(Portfolio).filter(Portfolio.id == github_portfolio["id"]).one()
    assert portfolio.is_verified is True
    assert portfolio.last_synced is not None
    status = json.loads(portfolio.sync_status_json)
    assert status["status"] == "success"
    assert status["last_error"] is None
    stats = json.loads(portfolio.statistics_json)
    assert stats["total_repos"] == 2
    assert stats["total_stars"] == 6
    assert stats["followers"] == 11
    assert stats["languages"] == {"Python": 2000, "Dockerfile": 40}

    s = db_session.query(Student).filter(Student.user_id == student["id"]).one()
    skills = json.loads(s.skills)
    # Existing skills stay first; "python" folds into "Python".
    assert skills[:3] == ["Python", "SQL", "Docker"]
    assert "flask" in skills
    assert [x.lower() for x in skills].count("python") == 1
    assert json.loads(s.programming_languages) == ["Python", "Dockerfile"]


def test_resync_is_idempotent(client, student, github_portfolio, fake_github, db_session):
    assert _sync(client, student, github_portfolio["id"], username="octo").status_code == 200
    first_skills = client.get("/students/me", headers=student["headers"]).json()["skills"]

    fake_github.repos[0]["stargazers_count"] = 42
    r = _sync(client, student, github_portfolio["id"], username="octo")
    assert r.status_code == 200, r.text
    assert r.json()["projects_imported"] == 0
    assert r.json()["projects_updated"] == 2

    assert db_session.query(Project).count() == 2
    flask_api = db_session.query(Project).filter(Project.title == "flask-api").one()
    assert flask_api.stars_count == 42

    second_skills = client.get("/students/me", headers=student["headers"]).json()["skills"]
    assert second_skills == first_skills


def test_sync_failure_preserves_previous_state(client, student, github_portfolio, fake_github, db_session):
    assert _sync(client, student, github_portfolio["id"], username="octo").status_code == 200
    before = client.get(f"/portfolios/{github_portfolio['id']}", headers=student["headers"]).json()
    skills_before = client.get("/students/me", headers=student["headers"]).json()["skills"]

    fake_github.fail = True
    r = _sync(client, student, github_portfolio["id"], username="octo")
    assert r.status_code == 400
    assert r.json()["error"].startswith("Sync failed:")

    after = client.get(f"/portfolios/{github_portfolio['id']}", headers=student["headers"]).json()
    assert after["sync_status"]["status"] == "error"
    assert "503" in after["sync_status"]["last_error"]
    assert after["sync_status"]["last_successful_sync"] == before["sync_status"]["last_successful_sync"]
    assert len(after["projects"]) == 2
    assert after["statistics"] == before["statistics"]
    assert client.get("/students/me", headers=student["headers"]).json()["skills"] == skills_before


def test_first_sync_failure_has_no_last_success(client, student, github_portfolio, fake_github):
    fake_github.fail = True
    assert _sync(client, student, github_portfolio["id"], username="octo").status_code == 400
    p = client.get(f"/portfolios/{github_portfolio['id']}", headers=student["headers"]).json()
    assert p["sync_status"]["last_successful_sync"] is None
    assert p["projects"] == []
    assert p["is_verified"] is False


def test_sync_uses_stored_username(client, student, github_portfolio, fake_github):
    r = _sync(client, student, github_portfolio["id"])
    assert r.status_code == 200, r.text


def test_sync_forbidden_for_other_student(client, signup, github_portfolio, fake_github):
    other = signup(email="other_s@example.com", role="student")
    r = _sync(client, other, github_portfolio["id"], username="octo")
    assert r.status_code == 403


def test_sync_unsupported_platform(client, student, fake_github):
    r = client.post(
        "/portfolios",
        headers=student["headers"],
        json={"platform": "behance", "profile_url": "https://behance.net/octo"},
    )
    r = _sync(client, student, r.json()["id"], username="octo")
    assert r.status_code == 400
    assert "GitHub" in r.json()["error"]


def test_sync_missing_portfolio(client, student, fake_github):
    assert _sync(client, student, 999, username="octo").status_code == 404


def test_service_level_sync_with_injected_client(client, student, github_portfolio, db_session):
    fake = FakeGitHub([_repo("solo", topics=["django"])])
    result = asyncio.run(
        portfolio_sync.sync_portfolio(
            db_session,
            portfolio_id=github_portfolio["id"],
            student_id=student["id"],
            username="octo",
            client=fake.client(),
        )
    )
    assert result["projects_imported"] == 1
    assert "django" in result["skills_found"]

    fake.fail = True
    with pytest.raises(BadRequestError):
        asyncio.run(
            portfolio_sync.sync_portfolio(
                db_session,
                portfolio_id=github_portfolio["id"],
                student_id=student["id"],
                username="octo",
                client=fake.client(),
            )
        )
    assert db_session.query(Project).count() == 1


def test_duplicate_platform_portfolio_rejected(client, student, github_portfolio):
    r = client.post(
        "/portfolios",
        headers=student["headers"],
        json={"platform": "github", "profile_url": "https://github.com/octo2"},
    )
    assert r.status_code == 400
    assert "already exists" in r.json()["error"]


def test_invalid_platform_rejected(client, student):
    r = client.post(
        "/portfolios",
        headers=student["headers"],
        json={"platform": "myspace", "profile_url": "https://myspace.com/octo"},
    )
    assert r.status_code == 400


def test_project_crud_and_cascade(client, student, signup, github_portfolio, db_session):
    pid = github_portfolio["id"]
    r = client.post(
        f"/portfolios/{pid}/projects",
        headers=student["headers"],
        json={"title": "Thesis", "technologies": ["PyTorch", "pytorch", "CUDA"]},
    )
    assert r.status_code == 201, r.text
    project = r.json()
    assert project["technologies"] == ["PyTorch", "CUDA"]
    assert project["status"] == "active"

    other = signup(email="intruder@example.com", role="student")
    r = client.put(f"/portfolios/projects/{project['id']}", headers=other["headers"], json={"title": "Mine"})
    assert r.status_code == 403

    r = client.put(f"/portfolios/projects/{project['id']}", headers=student["headers"], json={"title": "Thesis v2"})
    assert r.json()["title"] == "Thesis v2"

    listed = client.get(f"/portfolios/{pid}/projects", headers=student["headers"]).json()
    assert [p["title"] for p in listed] == ["Thesis v2"]

    assert client.delete(f"/portfolios/{pid}", headers=other["headers"]).status_code == 403
    assert client.delete(f"/portfolios/{pid}", headers=student["headers"]).status_code == 200
    assert db_session.query(Project).count() == 0


def test_private_portfolio_hidden_from_others(client, student, signup, github_portfolio):
    pid = github_portfolio["id"]
    r = client.put(f"/portfolios/{pid}", headers=student["headers"], json={"is_public": False})
    assert r.status_code == 200 and r.json()["is_public"] is False

    other = signup(email="peek@example.com", role="student")
    assert client.get(f"/portfolios/{pid}", headers=other["headers"]).status_code == 404
    assert client.get(f"/portfolios/{pid}", headers=student["headers"]).status_code == 200
    assert client.get("/portfolios/search").json()["total"] == 0


def test_search_and_my_portfolios(client, student, github_portfolio):
    client.put(
        f"/portfolios/{github_portfolio['id']}",
        headers=student["headers"],
        json={"title": "Octo's open source"},
    )
    client.post(
        f"/portfolios/{github_portfolio['id']}/projects",
        headers=student["headers"],
        json={"title": "CLI", "technologies": ["Rust"]},
    )

    assert client.get("/portfolios/search", params={"q": "open source"}).json()["total"] == 1
    assert client.get("/portfolios/search", params={"q": "Sam"}).json()["total"] == 1
    assert client.get("/portfolios/search", params={"platform": "behance"}).json()["total"] == 0
    assert client.get("/portfolios/search", params={"technologies": "rust"}).json()["total"] == 1
    assert client.get("/portfolios/search", params={"technologies": "cobol"}).json()["total"] == 0

    mine = client.get("/portfolios/my", headers=student["headers"]).json()
    assert [p["id"] for p in mine] == [github_portfolio["id"]]
