"""
Google Calendar API client for free/busy lookups and event creation.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import AuthenticationError, CalendarAPIError
from ..domain.models import BusyInterval, CandidateSlot

logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """
    Client for Google Calendar v3 operations.

    Uses the /freeBusy endpoint to fetch busy information and the events
    endpoint to book meetings.
    """

    CALENDAR_API_ENDPOINT = "https://www.googleapis.com/calendar/v3"

    # 403 reasons that mean "slow down" rather than "bad credentials"
    RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded"})

    def __init__(self, access_token: str, request_timeout: int = 30):
        """
        Initialize the Calendar API client.

        Args:
            access_token: Valid Google OAuth access token with calendar scope
            request_timeout: Seconds to wait for each HTTP request
        """
        self.access_token = access_token
        self.request_timeout = request_timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json"
        }

    def get_busy_intervals(
        self,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str = "UTC",
        calendar_ids: Sequence[str] = ("primary",)
    ) -> List[BusyInterval]:
        """
        Get busy intervals across one or more calendars.

        Args:
            start_time: Start of the time window
            end_time: End of the time window
            timezone: IANA timezone identifier for the returned instants
            calendar_ids: Calendars to query; their busy entries are merged

        Returns:
            List of BusyInterval objects (unsorted)

        Raises:
            CalendarAPIError: If the API call fails
            AuthenticationError: If the token is rejected
        """
        payload = {
            "timeMin": start_time.in_timezone("UTC").to_iso8601_string(),
            "timeMax": end_time.in_timezone("UTC").to_iso8601_string(),
            "timeZone": timezone,
            "items": [{"id": calendar_id} for calendar_id in calendar_ids]
        }

        data = self._request("POST", "/freeBusy", json=payload)

        return self._parse_freebusy_response(data, timezone)

    def _parse_freebusy_response(
        self,
        response_data: Dict[str, Any],
        timezone: str
    ) -> List[BusyInterval]:
        """
        Parse the freeBusy API response into our domain model.

        Response format:
        {
            "calendars": {
                "primary": {
                    "busy": [{"start": "2024-11-25T09:00:00Z", "end": "..."}],
                    "errors": [{"domain": "global", "reason": "notFound"}]
                }
            }
        }
        """
        busy_intervals: List[BusyInterval] = []

        for calendar_id, calendar in response_data.get("calendars", {}).items():
            for error in calendar.get("errors", []):
                logger.warning(
                    "Calendar %s reported an error: %s",
                    calendar_id,
                    error.get("reason", "unknown")
                )

            for item in calendar.get("busy", []):
                try:
                    start = self._parse_datetime(item["start"], timezone)
                    end = self._parse_datetime(item["end"], timezone)
                    busy_intervals.append(BusyInterval(start=start, end=end))

                except (KeyError, ValueError) as e:
                    logger.warning("Could not parse busy entry in %s: %s", calendar_id, e)
                    continue

        return busy_intervals

    def _parse_datetime(self, datetime_str: str, timezone: str) -> DateTime:
        """
        Parse an RFC 3339 string to a pendulum DateTime in the given timezone.

        Raises:
            ValueError: If the string is not a datetime
        """
        dt = pendulum.parse(datetime_str)

        if isinstance(dt, DateTime):
            return dt.in_timezone(timezone)

        raise ValueError(f"Could not parse datetime: {datetime_str}")

    def create_event(
        self,
        slot: CandidateSlot,
        title: str,
        description: str = "",
        timezone: str = "UTC",
        with_meet: bool = True
    ) -> Dict[str, Any]:
        """
        Book a slot on the primary calendar.

        Args:
            slot: The chosen candidate slot
            title: Event summary, "Meeting" when empty
            description: Optional free-text notes
            timezone: Timezone recorded on the event
            with_meet: Request a Google Meet conference link

        Returns:
            The created event resource

        Raises:
            CalendarAPIError: If the API call fails
        """
        body: Dict[str, Any] = {
            "summary": title or "Meeting",
            "description": f"Notes:\n{description}" if description else "",
            "start": {
                "dateTime": slot.start.to_iso8601_string(),
                "timeZone": timezone
            },
            "end": {
                "dateTime": slot.end.to_iso8601_string(),
                "timeZone": timezone
            },
            "attendees": []
        }

        params = {}
        if with_meet:
            params["conferenceDataVersion"] = 1
            body["conferenceData"] = {
                "createRequest": {
                    "requestId": f"meeting-{int(time.time() * 1000)}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"}
                }
            }

        event = self._request("POST", "/calendars/primary/events", json=body, params=params)
        logger.info("Created event %s at %s", event.get("id"), slot.start)

        return event

    @staticmethod
    def meet_link(event: Dict[str, Any]) -> Optional[str]:
        """Extract the first conference entry point from an event, if any."""
        entry_points = event.get("conferenceData", {}).get("entryPoints", [])
        if entry_points:
            return entry_points[0].get("uri")
        return None

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching the primary calendar.

        Returns:
            Calendar resource data

        Raises:
            CalendarAPIError: If connection test fails
        """
        return self._request("GET", "/calendars/primary", timeout=10)

    def _request(
        self,
        method: str,
        path: str,
        timeout: Optional[int] = None,
        **kwargs
    ) -> Dict[str, Any]:
        url = f"{self.CALENDAR_API_ENDPOINT}{path}"

        try:
            response = requests.request(
                method,
                url,
                headers=self.headers,
                timeout=timeout or self.request_timeout,
                **kwargs
            )
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Google Calendar request failed: {e}") from e

        if response.status_code in (401, 403) and not self._is_rate_limited(response):
            raise AuthenticationError(
                f"Google Calendar rejected the access token ({response.status_code})"
            )

        try:
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            raise CalendarAPIError(f"Google Calendar request failed: {e}") from e
        except ValueError as e:
            raise CalendarAPIError(f"Google Calendar returned invalid JSON: {e}") from e

    def _is_rate_limited(self, response: requests.Response) -> bool:
        """
        Check a 403 body for a quota reason.

        Error format:
        {"error": {"code": 403, "errors": [{"reason": "rateLimitExceeded", ...}]}}
        """
        if response.status_code != 403:
            return False

        try:
            errors = response.json().get("error", {}).get("errors", [])
        except (ValueError, AttributeError):
            return False

        return any(error.get("reason") in self.RATE_LIMIT_REASONS for error in errors)
