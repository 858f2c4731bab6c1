"""Calendar and holiday operations for Microsoft Graph."""
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..utils.errors import ResourceNotFoundError
from .base import GraphClientBase

logger = logging.getLogger(__name__)

INDIA_HOLIDAY_CALENDAR = "India holidays"
JAPAN_HOLIDAY_CALENDARS = ["Japan holidays", "日本 の休日"]


class Calendar(GraphClientBase):
    """Calendar operations for the signed-in user."""

    async def get_calendars(self) -> List[Dict[str, Any]]:
        """Get every calendar of the signed-in user."""
        return await self._get_values("me/calendars")

    async def get_holidays_by_calendar_name(
        self, calendar_name: str, start: str, end: str
    ) -> List[Dict[str, str]]:
        """Get the events of a named calendar within a date range.

        Args:
            calendar_name: Exact calendar name (e.g. 'India holidays').
            start: Range start, ISO 8601.
            end: Range end, ISO 8601.

        Returns:
            List of dicts with 'name' and 'date'.

        Raises:
            ResourceNotFoundError: No calendar has that name.
        """
        return await self._get_holidays([calendar_name], start, end)

    async def get_india_holidays(
        self, start: str, end: str, calendar_name: str = INDIA_HOLIDAY_CALENDAR
    ) -> List[Dict[str, str]]:
        return await self.get_holidays_by_calendar_name(calendar_name, start, end)

    async def get_japan_holidays(
        self, start: str, end: str, calendar_names: Optional[Sequence[str]] = None
    ) -> List[Dict[str, str]]:
        """Get Japanese holidays from the first calendar matching any of the names."""
        return await self._get_holidays(calendar_names or JAPAN_HOLIDAY_CALENDARS, start, end)

    async def _get_holidays(
        self, calendar_names: Sequence[str], start: str, end: str
    ) -> List[Dict[str, str]]:
        calendars = await self.get_calendars()
        target = next((c for c in calendars if c.get("name") in calendar_names), None)
        if target is None:
            if len(calendar_names) == 1:
                raise ResourceNotFoundError(f'Calendar "{calendar_names[0]}" not found')
            raise ResourceNotFoundError(
                f"Holiday calendar not found. Searched for: {', '.join(calendar_names)}"
            )

        events = await self._get_values(
            f"me/calendars/{target['id']}/calendarView",
            {"startDateTime": start, "endDateTime": end},
        )
        logger.debug(f"Found {len(events)} events in calendar {target.get('name')!r}")
        return [
            {"name": event.get("subject", ""), "date": event.get("start", {}).get("dateTime", "")}
            for event in events
        ]
