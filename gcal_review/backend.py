"""
Calendar backend
Talks to the Google Calendar MCP server over stdio
"""

import json
import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from .config import get_tzinfo
from .events import Attendee

logger = logging.getLogger(__name__)


class CalendarBackendError(Exception):
    """A calendar request failed or the server answered with an error"""


class MCPClient:
    """Client for interacting with MCP server via stdio"""

    def __init__(self, server_path: str, args: Optional[List[str]] = None):
        self.server_path = server_path
        self.args = args or []
        self.session: Optional[ClientSession] = None
        self.stdio_context = None
        self.session_context = None

    async def connect(self):
        """Connect to MCP server"""
        server_params = StdioServerParameters(
            command=self.server_path,
            args=self.args,
            env=None
        )

        # Enter the stdio context
        self.stdio_context = stdio_client(server_params)
        stdio, write = await self.stdio_context.__aenter__()

        # Enter the session context
        self.session_context = ClientSession(stdio, write)
        self.session = await self.session_context.__aenter__()

        await self.session.initialize()
        logger.debug("Connected to MCP server %s", self.server_path)

    async def disconnect(self):
        """Disconnect from MCP server"""
        # Exit contexts in reverse order
        if self.session_context:
            await self.session_context.__aexit__(None, None, None)
            self.session_context = None
            self.session = None

        if self.stdio_context:
            await self.stdio_context.__aexit__(None, None, None)
            self.stdio_context = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    async def call_tool(self, tool_name: str, arguments: Dict) -> str:
        """Call an MCP tool and return its text result"""
        if not self.session:
            raise CalendarBackendError("Not connected to MCP server")

        result = await self.session.call_tool(tool_name, arguments)
        text = result.content[0].text if result.content else ''
        if getattr(result, 'isError', False):
            raise CalendarBackendError(text or f"{tool_name} failed")
        return text


def _is_error_text(result: str) -> bool:
    return result.lstrip().startswith('Error')


def day_bounds(day: date, timezone: str):
    """Start and end of `day` in `timezone`, as aware datetimes"""
    start = datetime.combine(day, time.min, tzinfo=get_tzinfo(timezone))
    return start, start + timedelta(days=1)


class CalendarBackend:
    """Lists and patches events of the primary calendar through the MCP server"""

    def __init__(self, client: MCPClient, timezone: str = "UTC", max_results: int = 250):
        self.client = client
        self.timezone = timezone
        self.max_results = max_results

    async def list_events(self, day: date) -> List[Dict]:
        """Raw event records for one day, ordered by start time"""
        time_min, time_max = day_bounds(day, self.timezone)
        params = {
            "time_filter": "custom",
            "time_min": time_min.isoformat(),
            "time_max": time_max.isoformat(),
            "timezone": self.timezone,
            # Overlaps are computed locally
            "detect_overlaps": False,
            "show_declined": True,
            "max_results": self.max_results,
            "output_format": "json"
        }

        logger.debug("list_events %s..%s", params["time_min"], params["time_max"])
        result = await self.client.call_tool("list_events", params)
        if _is_error_text(result):
            raise CalendarBackendError(result.strip())

        try:
            data = json.loads(result) if result else {}
        except json.JSONDecodeError as e:
            raise CalendarBackendError(f"JSON parse error: {e}. Result: {result[:200]}")

        events = data.get('events', []) if isinstance(data, dict) else data
        logger.debug("list_events returned %d events for %s", len(events), day)
        return events

    async def patch_attendees(self, event_id: str, attendees: Sequence[Attendee]) -> Optional[Dict]:
        """Update the attendee list of a single event

        Returns the updated event when the server answers with JSON, None otherwise.
        """
        params = {
            "event_id": event_id,
            "attendees": [a.to_patch() for a in attendees],
            "send_notifications": False
        }

        logger.debug("edit_event %s", event_id)
        result = await self.client.call_tool("edit_event", params)
        if _is_error_text(result):
            raise CalendarBackendError(result.strip())

        try:
            raw_event = json.loads(result)
        except json.JSONDecodeError:
            return None
        return raw_event if isinstance(raw_event, dict) else None
