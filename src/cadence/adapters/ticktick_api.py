"""TickTick API adapter - HTTP client for task reads and writes."""

import logging
import threading
import time
import webbrowser
from zoneinfo import ZoneInfo

import requests

from cadence.adapters.http import DEFAULT_TIMEOUT, RetryPolicy
from cadence.config import Config, Tokens, load_config
from cadence.core.tasks import Task
from cadence.errors import AuthenticationError, StoreError

logger = logging.getLogger(__name__)

API_BASE = "https://api.ticktick.com/open/v1"
OAUTH_AUTHORIZE_URL = "https://ticktick.com/oauth/authorize"
OAUTH_TOKEN_URL = "https://ticktick.com/oauth/token"
REDIRECT_URI = "http://localhost:8080/callback"

INBOX_PROJECT_ID = "inbox"
COMPLETED_STATUS = 2
CACHE_TTL_SECONDS = 30


class TickTickAdapter:
    """
    TickTick API adapter.

    Implements TaskRepository protocol. Handles authentication, token refresh,
    retries and API calls. No business logic - just I/O.

    Raw task listings are cached for a few seconds so that the active and
    completed listings of one run share a single pass over the projects.
    Any write drops the cache.
    """

    def __init__(
        self,
        config: Config | None = None,
        tokens: Tokens | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.config = config or load_config()
        self.tokens = tokens or Tokens.load()
        self.retry = retry or RetryPolicy.from_config(self.config)
        self.tz = ZoneInfo(self.config.timezone)
        self._session = self.retry.session()
        self._project_names: dict[str, str] = {}
        self._cache: tuple[float, list[dict]] | None = None
        self._lock = threading.Lock()

    def _ensure_valid_token(self) -> None:
        """Refresh token if expired or expiring soon."""
        if not self.tokens.access_token:
            raise AuthenticationError("No access token. Run 'cadence auth' first.")

        # Refresh if expiring within 5 minutes
        if self.tokens.expires_at and time.time() >= self.tokens.expires_at - 300:
            self._refresh_token()

    def _refresh_token(self) -> None:
        """Refresh the access token."""
        if not self.tokens.refresh_token:
            raise AuthenticationError("No refresh token. Run 'cadence auth' first.")

        try:
            resp = self._session.post(
                OAUTH_TOKEN_URL,
                data={
                    "client_id": self.config.ticktick_client_id,
                    "client_secret": self.config.ticktick_client_secret,
                    "refresh_token": self.tokens.refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=DEFAULT_TIMEOUT,
            )
        except requests.RequestException as e:
            raise StoreError(f"Token refresh failed: {e}") from e

        if resp.status_code != 200:
            raise AuthenticationError(f"Token refresh failed: {resp.text}")

        data = resp.json()
        self.tokens.access_token = data["access_token"]
        if "refresh_token" in data:
            self.tokens.refresh_token = data["refresh_token"]
        self.tokens.expires_at = int(time.time()) + data.get("expires_in", 3600)
        self.tokens.save()
        logger.info("TickTick access token refreshed")

    def _api_request(self, method: str, endpoint: str, payload: dict | None = None) -> dict | list:
        """Make authenticated API request. A 401 triggers one token refresh."""
        self._ensure_valid_token()
        url = f"{API_BASE}{endpoint}"
        try:
            resp = self._send(method, url, payload)
            if resp.status_code == 401 and self.tokens.refresh_token:
                logger.info("TickTick returned 401, refreshing token")
                self._refresh_token()
                resp = self._send(method, url, payload)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise StoreError(f"TickTick {method} {endpoint} failed: {e}") from e
        if not resp.content:
            return {}
        return resp.json()

    def _send(self, method: str, url: str, payload: dict | None) -> requests.Response:
        return self._session.request(
            method,
            url,
            json=payload,
            headers={"Authorization": f"Bearer {self.tokens.access_token}"},
            timeout=DEFAULT_TIMEOUT,
        )

    def _get_projects(self) -> list[dict]:
        """Get all projects."""
        return self._api_request("GET", "/project")

    def _get_project_tasks(self, project_id: str) -> list[dict]:
        """Get tasks for a project."""
        data = self._api_request("GET", f"/project/{project_id}/data")
        return data.get("tasks", []) or []

    def _load_project_names(self) -> None:
        """Cache project ID to name mapping. The inbox is not listed by the API."""
        if not self._project_names:
            projects = self._get_projects()
            self._project_names = {INBOX_PROJECT_ID: "Inbox"}
            self._project_names.update({p["id"]: p["name"] for p in projects})

    def _fetch_raw(self) -> list[dict]:
        """All raw task dicts across projects, served from cache when fresh."""
        with self._lock:
            if self._cache and time.monotonic() - self._cache[0] < CACHE_TTL_SECONDS:
                return self._cache[1]

            self._load_project_names()
            raw = []
            for project_id in self._project_names:
                raw.extend(self._get_project_tasks(project_id))

            logger.info(f"Fetched {len(raw)} tasks from {len(self._project_names)} TickTick projects")
            self._cache = (time.monotonic(), raw)
            return raw

    def _invalidate(self) -> None:
        with self._lock:
            self._cache = None

    def list_active(self) -> list[Task]:
        return [Task.from_api(t, self.tz) for t in self._fetch_raw() if t.get("status") != COMPLETED_STATUS]

    def list_completed(self) -> list[Task]:
        return [Task.from_api(t, self.tz) for t in self._fetch_raw() if t.get("status") == COMPLETED_STATUS]

    def list_projects(self) -> dict[str, str]:
        self._load_project_names()
        return dict(self._project_names)

    def update(self, task_id: str, fields: dict) -> Task:
        """Partial update. ``fields`` must carry id, projectId and title."""
        data = self._api_request("POST", f"/task/{task_id}", fields)
        self._invalidate()
        logger.info(f"Task updated: {task_id}")
        return Task.from_api(data or {**fields, "id": task_id}, self.tz)

    def create(self, draft: dict) -> Task:
        data = self._api_request("POST", "/task", draft)
        self._invalidate()
        logger.info(f"Task created: {draft.get('title', '')}")
        return Task.from_api(data, self.tz)


def authorize(config: Config | None = None) -> Tokens:
    """Run OAuth authorization flow."""
    config = config or load_config()

    if not config.ticktick_client_id or not config.ticktick_client_secret:
        raise AuthenticationError("Missing TickTick credentials. Add them to config/cadence.conf")

    auth_url = (
        f"{OAUTH_AUTHORIZE_URL}"
        f"?client_id={config.ticktick_client_id}"
        f"&scope=tasks:read%20tasks:write"
        f"&redirect_uri={REDIRECT_URI}"
        f"&response_type=code"
    )

    print("Opening browser for TickTick authorization...")
    webbrowser.open(auth_url)

    print("\nAfter authorizing, you'll be redirected to a page that won't load.")
    print("Copy the 'code' parameter from the URL.\n")

    code = input("Paste the code here: ").strip()
    if not code:
        raise AuthenticationError("No code provided")

    print("Exchanging code for tokens...")
    try:
        resp = requests.post(
            OAUTH_TOKEN_URL,
            data={
                "client_id": config.ticktick_client_id,
                "client_secret": config.ticktick_client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": REDIRECT_URI,
            },
            timeout=DEFAULT_TIMEOUT,
        )
    except requests.RequestException as e:
        raise AuthenticationError(f"Token exchange failed: {e}") from e

    if resp.status_code != 200:
        raise AuthenticationError(f"Token exchange failed: {resp.text}")

    data = resp.json()
    tokens = Tokens(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token", ""),
        expires_at=int(time.time()) + data.get("expires_in", 3600),
    )
    tokens.save()

    print("Authentication successful!")
    return tokens
