"""
Non-interactive output: print one day's events with a format string
"""

from typing import Dict, Iterable, List

from .events import CalendarEvent

DEFAULT_FORMAT = "{start:%H:%M}-{end:%H:%M} {mark} {title}{conflict}"


def event_fields(event: CalendarEvent) -> Dict:
    """Fields available to --format templates"""
    return {
        'id': event.id,
        'title': event.summary,
        'start': event.start_time,
        'end': event.end_time,
        'status': event.response_status,
        'mark': event.get_response_char(),
        'note': event.note or '',
        'link': event.html_link or '',
        'conflicts': ','.join(event.conflicts_with),
        'conflict': ' !' if event.conflicts_with else '',
        'interesting': 'yes' if event.is_interesting else 'no',
    }


def format_events(events: Iterable[CalendarEvent], fmt: str = DEFAULT_FORMAT) -> List[str]:
    """Render every event with `fmt`; bad placeholders raise ValueError"""
    lines = []
    for event in events:
        try:
            lines.append(fmt.format_map(event_fields(event)))
        except (KeyError, IndexError) as e:
            raise ValueError(f"unknown field in format: {e}")
    return lines
