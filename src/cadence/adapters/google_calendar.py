"""Google Calendar API adapter."""

import logging
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from cadence.adapters.http import RetryPolicy
from cadence.config import GOOGLE_TOKEN_FILE
from cadence.core.calendar import Event
from cadence.errors import AuthenticationError, StoreError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]


class GoogleCalendarAdapter:
    """Reads and writes Google Calendar events. Implements CalendarRepository."""

    def __init__(
        self,
        client_secret_file: str = "",
        timezone: str = "Europe/Paris",
        token_path: Path | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.client_secret_file = client_secret_file
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)
        self.retry = retry or RetryPolicy()
        self._token_path = Path(token_path or GOOGLE_TOKEN_FILE).expanduser()
        self._service = None

    def _get_credentials(self):
        """Load credentials from the token file, refreshing if needed."""
        from google.auth.exceptions import RefreshError
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials

        if not self._token_path.exists():
            raise AuthenticationError("No Google token - run 'cadence cal-auth'")

        creds = Credentials.from_authorized_user_file(str(self._token_path), SCOPES)

        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except RefreshError as e:
                raise AuthenticationError(f"Failed to refresh Google token: {e}") from e
            self._token_path.write_text(creds.to_json())
            self._token_path.chmod(0o600)

        return creds

    def _build_service(self):
        """Build a Google Calendar API service."""
        from googleapiclient.discovery import build

        if self._service is None:
            self._service = build("calendar", "v3", credentials=self._get_credentials(), cache_discovery=False)
        return self._service

    def _execute(self, request, what: str):
        """Run a request with the retry budget; client errors become StoreError."""
        from googleapiclient.errors import HttpError

        try:
            return request.execute(num_retries=self.retry.retries)
        except HttpError as e:
            raise StoreError(f"Google Calendar {what} failed: {e}") from e
        except OSError as e:
            raise StoreError(f"Google Calendar {what} failed: {e}") from e

    def authenticate(self) -> bool:
        """Run OAuth flow for this account. Returns True on success."""
        from google_auth_oauthlib.flow import InstalledAppFlow

        if not self.client_secret_file:
            logger.error("No client secret file configured")
            return False

        secret_path = Path(self.client_secret_file).expanduser()
        if not secret_path.exists():
            logger.error(f"Client secret file not found: {secret_path}")
            return False

        flow = InstalledAppFlow.from_client_secrets_file(str(secret_path), SCOPES)
        creds = flow.run_local_server(port=0)

        self._token_path.parent.mkdir(parents=True, exist_ok=True)
        self._token_path.write_text(creds.to_json())
        self._token_path.chmod(0o600)
        return True

    def list_events(self, calendar_id: str, start: datetime, end: datetime) -> list[Event]:
        """Fetch single (expanded) events in [start, end), following pagination."""
        service = self._build_service()
        events = []
        page_token = None

        while True:
            request = service.events().list(
                calendarId=calendar_id,
                timeMin=start.isoformat(),
                timeMax=end.isoformat(),
                singleEvents=True,
                orderBy="startTime",
                timeZone=self.timezone,
                pageToken=page_token,
            )
            result = self._execute(request, f"list {calendar_id}")

            for item in result.get("items", []):
                event = Event.from_api(item, calendar_id, self.tz)
                if event is not None:
                    events.append(event)

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Fetched {len(events)} events from {calendar_id}")
        return events

    def create_event(self, calendar_id: str, draft: dict) -> Event:
        service = self._build_service()
        item = self._execute(service.events().insert(calendarId=calendar_id, body=draft), "insert")
        logger.info(f"Event created in {calendar_id}: {draft.get('summary', '')}")
        return Event.from_api(item, calendar_id, self.tz)

    def update_event(self, calendar_id: str, event_id: str, fields: dict) -> Event:
        service = self._build_service()
        item = self._execute(
            service.events().patch(calendarId=calendar_id, eventId=event_id, body=fields),
            f"patch {event_id}",
        )
        logger.info(f"Event updated in {calendar_id}: {event_id}")
        return Event.from_api(item, calendar_id, self.tz)

    def list_calendars(self) -> list[tuple[str, str, str]]:
        """List calendars as (accessRole, summary, id) tuples."""
        service = self._build_service()
        result = self._execute(service.calendarList().list(), "calendar list")
        return [
            (entry.get("accessRole", ""), entry.get("summary", ""), entry.get("id", ""))
            for entry in result.get("items", [])
        ]
