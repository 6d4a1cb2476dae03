import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from .. import config
from ..utils.error_handlers import ExternalServiceError

logger = logging.getLogger(__name__)

USER_AGENT = "CareerLaunch-App"

# Fixed vocabulary for skill extraction. Matching is plain substring search, so
# short keywords ("go", "api", "rest") can produce false positives.
SKILL_KEYWORDS = (
    # Programming languages
    "javascript", "typescript", "python", "java", "cpp", "c++", "c#", "csharp",
    "php", "ruby", "go", "rust", "kotlin", "swift", "dart", "scala",
    # Web
    "react", "vue", "angular", "nodejs", "node.js", "express", "nestjs",
    "django", "flask", "laravel", "spring", "asp.net", "rails",
    # Databases
    "mysql", "postgresql", "mongodb", "redis", "elasticsearch", "sqlite",
    # Cloud / DevOps
    "docker", "kubernetes", "aws", "azure", "gcp", "terraform", "ansible",
    # Mobile
    "android", "ios", "flutter", "react-native", "xamarin",
    # Other
    "graphql", "rest", "api", "microservices", "blockchain", "machine-learning",
    "artificial-intelligence", "data-science", "analytics",
)


def _safe_truncate(s: str, n: int = 300) -> str:
    s = s or ""
    if len(s) <= n:
        return s
    return s[:n] + "…"


@dataclass
class PortfolioSnapshot:
    """Everything a sync needs, fetched up front before any database write."""
    profile: dict[str, Any]
    repositories: list[dict[str, Any]]
    languages: dict[str, int] = field(default_factory=dict)

    @property
    def own_repositories(self) -> list[dict[str, Any]]:
        return [r for r in self.repositories if not r.get("fork")]

    def statistics(self) -> dict[str, Any]:
        own = self.own_repositories
        return {
            "total_repos": len(own),
            "total_stars": sum(int(r.get("stargazers_count") or 0) for r in own),
            "total_forks": sum(int(r.get("forks_count") or 0) for r in own),
            "followers": int(self.profile.get("followers") or 0),
            "public_repos": int(self.profile.get("public_repos") or 0),
            "languages": dict(self.languages),
        }


class GitHubClient:
    """Minimal async client for the GitHub REST v3 endpoints used by portfolio sync."""

    def __init__(
        self,
        access_token: str | None = None,
        *,
        base_url: str | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token or config.GITHUB_TOKEN
        self.base_url = (base_url or config.GITHUB_API_URL).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else config.GITHUB_TIMEOUT_S
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }
        if self.access_token:
            headers["Authorization"] = f"token {self.access_token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout_s,
            transport=self._transport,
        )

    async def _get(self, client: httpx.AsyncClient, path: str, *, what: str, params: dict | None = None) -> Any:
        try:
            r = await client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise ExternalServiceError(f"Timed out fetching GitHub {what}") from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Failed to fetch GitHub {what}: {type(e).__name__}") from e
        if r.status_code >= 400:
            logger.info("GitHub %s returned %s: %s", path, r.status_code, _safe_truncate(r.text))
            raise ExternalServiceError(
                f"Failed to fetch GitHub {what} (HTTP {r.status_code})",
                details={"status_code": r.status_code},
            )
        return r.json()

    async def get_profile(self, username: str, *, client: httpx.AsyncClient | None = None) -> dict[str, Any]:
        if client is None:
            async with self._client() as c:
                return await self.get_profile(username, client=c)
        data = await self._get(client, f"/users/{username}", what="user profile")
        return data if isinstance(data, dict) else {}

    async def list_repositories(
        self,
        username: str,
        page: int = 1,
        per_page: int | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> list[dict[str, Any]]:
        if client is None:
            async with self._client() as c:
                return await self.list_repositories(username, page, per_page, client=c)
        params = {
            "type": "all",
            "sort": "updated",
            "direction": "desc",
            "page": page,
            "per_page": per_page or config.GITHUB_PER_PAGE,
        }
        data = await self._get(client, f"/users/{username}/repos", what="repositories", params=params)
        return [r for r in (data or []) if isinstance(r, dict)]

    async def get_languages(
        self,
        owner: str,
        repo: str,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> dict[str, int]:
        if client is None:
            async with self._client() as c:
                return await self.get_languages(owner, repo, client=c)
        data = await self._get(client, f"/repos/{owner}/{repo}/languages", what="repository languages")
        return {str(k): int(v) for k, v in (data or {}).items() if isinstance(v, (int, float))}

    async def fetch_portfolio(self, username: str, max_pages: int | None = None) -> PortfolioSnapshot:
        """
        Fetch profile, all repository pages and per-repository language bytes.

        Profile and repository listing failures propagate. A failed language
        lookup only loses that repository's byte counts.
        """
        max_pages = max_pages or config.GITHUB_MAX_PAGES
        async with self._client() as client:
            profile = await self.get_profile(username, client=client)

            repositories: list[dict[str, Any]] = []
            for page in range(1, max_pages + 1):
                batch = await self.list_repositories(username, page, client=client)
                if not batch:
                    break
                repositories.extend(batch)

            languages: dict[str, int] = {}
            for repo in repositories:
                if repo.get("fork"):
                    continue
                name = repo.get("name")
                if not name:
                    continue
                owner = (repo.get("owner") or {}).get("login") or username
                try:
                    repo_languages = await self.get_languages(owner, name, client=client)
                except ExternalServiceError as e:
                    logger.warning(f"Skipping languages for {owner}/{name}: {e.message}")
                    continue
                for lang, size in repo_languages.items():
                    languages[lang] = languages.get(lang, 0) + size

        logger.info("Fetched GitHub portfolio for %s: %s repositories", username, len(repositories))
        return PortfolioSnapshot(profile=profile, repositories=repositories, languages=languages)


def extract_skills_from_repositories(repositories: list[dict[str, Any]]) -> list[str]:
    """Keyword skills from language, topics, name and description, in first-seen order."""
    skills: dict[str, None] = {}
    for repo in repositories:
        language = repo.get("language")
        if language:
            skills.setdefault(str(language).lower(), None)

        for topic in repo.get("topics") or []:
            normalized = str(topic).lower().replace("-", "")
            if not normalized:
                continue
            if any(normalized in kw or kw in normalized for kw in SKILL_KEYWORDS):
                skills.setdefault(str(topic), None)

        text = f"{repo.get('name') or ''} {repo.get('description') or ''}".lower()
        for kw in SKILL_KEYWORDS:
            if kw in text:
                skills.setdefault(kw, None)
    return list(skills)
