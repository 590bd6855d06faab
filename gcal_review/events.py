"""
Calendar event model
Builds CalendarEvent objects from the raw event records returned by the gcal MCP server
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

RESPONSE_STATUSES = ('accepted', 'declined', 'needsAction', 'tentative', 'unknown')


class IngestionError(Exception):
    """Raised when a raw event record cannot be turned into a CalendarEvent"""

    def __init__(self, event_id: str, reason: str):
        super().__init__(f"{event_id or '<no id>'}: {reason}")
        self.event_id = event_id
        self.reason = reason


@dataclass(frozen=True)
class Attendee:
    email: str
    is_self: bool = False
    response_status: str = 'needsAction'
    comment: Optional[str] = None

    @classmethod
    def from_raw(cls, data: Dict) -> 'Attendee':
        return cls(
            email=data.get('email', ''),
            is_self=bool(data.get('self', False)),
            response_status=data.get('responseStatus', 'needsAction'),
            comment=data.get('comment') or None,
        )

    def to_patch(self) -> Dict:
        """Attendee entry in the shape the edit_event tool expects"""
        entry = {"email": self.email, "response_status": self.response_status}
        if self.comment is not None:
            entry["comment"] = self.comment
        return entry


class CalendarEvent:
    """Represents one timed calendar event occurrence with its conflict state"""

    def __init__(self, event_data: Dict):
        self.id = event_data.get('id', '')
        self.summary = event_data.get('summary') or 'No Title'
        self.html_link = event_data.get('htmlLink') or None
        self.creator_is_self = bool((event_data.get('creator') or {}).get('self', False))
        self.attendees = tuple(Attendee.from_raw(a) for a in event_data.get('attendees') or [])

        # All-day events only carry a 'date' and never reach the review
        self.start_time = self._parse_time(event_data.get('start', {}), 'start')
        self.end_time = self._parse_time(event_data.get('end', {}), 'end')

        self.response_status = self._get_response_status()

        # Filled in by conflicts.enrich()
        self.conflicts_with: Tuple[str, ...] = ()
        self.is_interesting = False

    def _parse_time(self, time_obj: Dict, field: str) -> datetime:
        """Parse the dateTime of an event time object"""
        value = time_obj.get('dateTime') if time_obj else None
        if not value:
            raise IngestionError(self.id, f"missing {field} dateTime")
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            raise IngestionError(self.id, f"invalid {field} dateTime {value!r}")
        if parsed.tzinfo is None:
            parsed = parsed.astimezone()
        return parsed

    def _get_response_status(self) -> str:
        """Response of the viewer, 'unknown' if they are not an attendee"""
        own = self.own_attendee
        status = own.response_status if own else 'unknown'
        if status not in RESPONSE_STATUSES:
            status = 'unknown'
        # Events you created yourself count as accepted
        if status == 'unknown' and self.creator_is_self:
            status = 'accepted'
        return status

    @property
    def own_attendee(self) -> Optional[Attendee]:
        for attendee in self.attendees:
            if attendee.is_self:
                return attendee
        return None

    @property
    def note(self) -> Optional[str]:
        own = self.own_attendee
        return (own.comment or None) if own else None

    @property
    def declined(self) -> bool:
        return self.response_status == 'declined'

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts_with)

    def with_response(self, status: Optional[str] = None, note: Optional[str] = None) -> Tuple[Attendee, ...]:
        """Return the attendee list with the viewer's entry updated, for a patch"""
        attendees = []
        for attendee in self.attendees:
            if attendee.is_self:
                attendee = Attendee(
                    email=attendee.email,
                    is_self=True,
                    response_status=status if status is not None else attendee.response_status,
                    comment=note if note is not None else attendee.comment,
                )
            attendees.append(attendee)
        return tuple(attendees)

    def apply_patch(self, status: Optional[str] = None, note: Optional[str] = None):
        """Record a confirmed status/note change on the local copy"""
        self.attendees = self.with_response(status, note)
        if status is not None:
            self.response_status = status

    def get_time_str(self) -> str:
        return f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"

    def get_response_char(self) -> str:
        """Get character representing RSVP status"""
        status_map = {
            'accepted': '✓',
            'declined': '✖',
            'tentative': '●',
            'needsAction': '●',
        }
        return status_map.get(self.response_status, ' ')

    def __repr__(self):
        return f"CalendarEvent({self.id!r}, {self.get_time_str()} {self.summary!r}, {self.response_status})"


def load_events(records: List[Dict]) -> Tuple[List[CalendarEvent], List[IngestionError]]:
    """Build events from raw records, skipping (and returning) the malformed ones"""
    events = []
    errors = []
    for record in records:
        try:
            events.append(CalendarEvent(record))
        except IngestionError as e:
            logger.debug("Skipping event %s", e)
            errors.append(e)
    return events, errors
