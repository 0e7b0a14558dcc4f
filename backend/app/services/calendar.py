"""External calendar collaborator.

Only the confirmation and cancellation paths touch the calendar; booking validation
never does. Events live in one shared mailbox (``calendar_owner_email``) with the
observer or the observed teacher as attendee.
"""
from __future__ import annotations

from datetime import datetime, time
import logging
from typing import Protocol
from zoneinfo import ZoneInfo

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.models.observation import Observation
from app.models.teacher import Teacher
from app.services.catalog import BellSlot, ScheduleCatalog
from app.services.side_effects import SideEffectResult, attempt, skipped

logger = logging.getLogger(__name__)

CALENDAR_CHANNEL = "calendar"
GRAPH_BASE = "https://graph.microsoft.com/v1.0"
# Observations spanning separate runs of periods keep one event id per run.
EVENT_ID_SEPARATOR = ","


class CalendarError(RuntimeError):
    pass


def _payload_value(resp: requests.Response, key: str) -> str:
    try:
        value = resp.json()[key]
    except (ValueError, KeyError, TypeError) as exc:
        raise CalendarError(f"Calendar response is missing '{key}'") from exc
    if not isinstance(value, str) or not value:
        raise CalendarError(f"Calendar response has an invalid '{key}'")
    return value


class CalendarClient(Protocol):
    enabled: bool

    def create_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        attendees: list[str],
        description: str,
    ) -> str: ...

    def delete_event(self, event_id: str) -> None: ...

    def default_calendar(self) -> str | None: ...


class NullCalendarClient:
    enabled = False

    def create_event(self, title, start, end, attendees, description) -> str:
        raise CalendarError("Calendar integration is disabled")

    def delete_event(self, event_id: str) -> None:
        raise CalendarError("Calendar integration is disabled")

    def default_calendar(self) -> str | None:
        return None


class GraphCalendarClient:
    """Microsoft Graph calendar client using app-only client credentials."""

    enabled = True

    def __init__(
        self,
        *,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        owner_email: str,
        timeout_seconds: int = 15,
        session: requests.Session | None = None,
    ) -> None:
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._owner = owner_email
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._token: str | None = None

    def _get_token(self) -> str:
        if self._token:
            return self._token
        url = f"https://login.microsoftonline.com/{self._tenant_id}/oauth2/v2.0/token"
        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "scope": "https://graph.microsoft.com/.default",
            "grant_type": "client_credentials",
        }
        try:
            resp = self._session.post(url, data=data, timeout=self._timeout)
        except requests.RequestException as exc:
            raise CalendarError("Calendar authentication request failed") from exc
        if resp.status_code != 200:
            raise CalendarError(f"Calendar authentication failed ({resp.status_code})")
        self._token = _payload_value(resp, "access_token")
        return self._token

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        headers = {"Authorization": f"Bearer {self._get_token()}"}
        try:
            return self._session.request(
                method,
                f"{GRAPH_BASE}{endpoint}",
                headers=headers,
                timeout=self._timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise CalendarError(f"Calendar request {method} {endpoint} failed") from exc

    @staticmethod
    def _graph_time(value: datetime) -> dict:
        zone = getattr(value.tzinfo, "key", None) or "UTC"
        return {"dateTime": value.strftime("%Y-%m-%dT%H:%M:%S"), "timeZone": zone}

    def create_event(self, title, start, end, attendees, description) -> str:
        body = {
            "subject": title,
            "body": {"contentType": "text", "content": description},
            "start": self._graph_time(start),
            "end": self._graph_time(end),
            "attendees": [
                {"emailAddress": {"address": email}, "type": "required"} for email in attendees if email
            ],
            "showAs": "busy",
        }
        resp = self._request("POST", f"/users/{self._owner}/events", json=body)
        if resp.status_code not in (200, 201):
            raise CalendarError(f"Calendar event creation failed ({resp.status_code})")
        return _payload_value(resp, "id")

    def delete_event(self, event_id: str) -> None:
        resp = self._request("DELETE", f"/users/{self._owner}/events/{event_id}")
        # 404 means the event is already gone.
        if resp.status_code not in (200, 204, 404):
            raise CalendarError(f"Calendar event deletion failed ({resp.status_code})")

    def default_calendar(self) -> str | None:
        resp = self._request("GET", f"/users/{self._owner}/calendar")
        if resp.status_code != 200:
            raise CalendarError(f"Calendar lookup failed ({resp.status_code})")
        return _payload_value(resp, "id")


def calendar_client_from_settings(settings: Settings) -> CalendarClient:
    if not settings.calendar_enabled:
        return NullCalendarClient()
    required = (
        settings.calendar_tenant_id,
        settings.calendar_client_id,
        settings.calendar_client_secret,
        settings.calendar_owner_email,
    )
    if not all(required):
        raise ConfigurationError("Calendar integration is enabled but its credentials are incomplete")
    return GraphCalendarClient(
        tenant_id=settings.calendar_tenant_id,
        client_id=settings.calendar_client_id,
        client_secret=settings.calendar_client_secret,
        owner_email=settings.calendar_owner_email,
        timeout_seconds=settings.calendar_timeout_seconds,
    )


def observation_windows(
    observation: Observation,
    teacher: Teacher,
    catalog: ScheduleCatalog,
    timezone_name: str,
) -> list[tuple[datetime, datetime]]:
    """One window per run of back-to-back booked periods on the observed teacher's bell schedule."""
    booked = set(observation.periods)
    runs: list[list[BellSlot]] = []
    previous_index: int | None = None
    for index, slot in enumerate(catalog.schedule_for_teacher(teacher)):
        if slot.period not in booked:
            continue
        if runs and previous_index == index - 1:
            runs[-1].append(slot)
        else:
            runs.append([slot])
        previous_index = index

    zone = ZoneInfo(timezone_name)

    def at(clock: str) -> datetime:
        return datetime.combine(observation.observation_date, time.fromisoformat(clock), tzinfo=zone)

    return [(at(run[0].start_time), at(run[-1].end_time)) for run in runs]


def _join_event_ids(event_ids: list[str]) -> str | None:
    return EVENT_ID_SEPARATOR.join(event_ids) or None


def _split_event_ids(value: str | None) -> list[str]:
    return [item for item in (value or "").split(EVENT_ID_SEPARATOR) if item]


def _create_party_events(
    client: CalendarClient,
    windows: list[tuple[datetime, datetime]],
    *,
    attendee: str,
    title: str,
    description: str,
) -> tuple[list[str], list[SideEffectResult]]:
    event_ids: list[str] = []
    results: list[SideEffectResult] = []
    for start, end in windows:
        result = attempt(
            CALENDAR_CHANNEL,
            attendee,
            lambda start=start, end=end: client.create_event(title, start, end, [attendee], description),
            expected=(CalendarError,),
        )
        if result.ok:
            event_ids.append(str(result.value))
        results.append(result)
    return event_ids, results


def create_observation_events(
    client: CalendarClient,
    observation: Observation,
    *,
    observer: Teacher,
    teacher: Teacher,
    catalog: ScheduleCatalog,
    timezone_name: str,
) -> list[SideEffectResult]:
    """Create events for both parties and store the returned ids on the observation.

    Periods that are not back to back get separate events, so the gaps between them stay free.
    """
    if not client.enabled:
        return [skipped(CALENDAR_CHANNEL, observation.id, "Calendar integration is disabled")]
    windows = observation_windows(observation, teacher, catalog, timezone_name)
    if not windows:
        return [skipped(CALENDAR_CHANNEL, observation.id, "No bell schedule slots for the booked periods")]
    period_label = ", ".join(str(item) for item in observation.periods)

    observer_ids, observer_results = _create_party_events(
        client,
        windows,
        attendee=observer.email,
        title=f"Observing {teacher.name}",
        description=f"Peer observation of {teacher.name} (room {teacher.room or 'TBD'}), period(s) {period_label}.",
    )
    teacher_ids, teacher_results = _create_party_events(
        client,
        windows,
        attendee=teacher.email,
        title=f"Observed by {observer.name}",
        description=f"{observer.name} will observe your class during period(s) {period_label}.",
    )
    if observer_ids:
        observation.observer_event_id = _join_event_ids(observer_ids)
    if teacher_ids:
        observation.teacher_event_id = _join_event_ids(teacher_ids)
    return observer_results + teacher_results


def remove_observation_events(client: CalendarClient, observation: Observation) -> list[SideEffectResult]:
    """Delete linked events; references are cleared even when the delete fails."""
    event_ids = _split_event_ids(observation.observer_event_id) + _split_event_ids(observation.teacher_event_id)
    if not event_ids:
        return []
    observation.observer_event_id = None
    observation.teacher_event_id = None
    if not client.enabled:
        return [skipped(CALENDAR_CHANNEL, observation.id, "Calendar integration is disabled")]
    return [
        attempt(CALENDAR_CHANNEL, event_id, lambda event_id=event_id: client.delete_event(event_id), expected=(CalendarError,))
        for event_id in event_ids
    ]


def publish_confirmed_events(
    db: Session,
    client: CalendarClient,
    observation: Observation,
    *,
    catalog: ScheduleCatalog,
    timezone_name: str,
) -> list[SideEffectResult]:
    """Create events for a confirmed observation and persist the event ids."""
    observer = db.get(Teacher, observation.observer_id)
    teacher = db.get(Teacher, observation.teacher_id)
    if observer is None or teacher is None:
        return [skipped(CALENDAR_CHANNEL, observation.id, "Observer or teacher no longer on the roster")]
    results = create_observation_events(
        client,
        observation,
        observer=observer,
        teacher=teacher,
        catalog=catalog,
        timezone_name=timezone_name,
    )
    if any(item.ok for item in results):
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.warning("Calendar event ids for observation %s were not saved", observation.id, exc_info=True)
    return results
