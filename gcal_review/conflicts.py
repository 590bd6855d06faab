"""
Conflict detection and interest classification for one day of events

Events are half-open intervals [start, end): back-to-back events do not overlap.
Declined events never take part in conflicts.
"""

from typing import Dict, List, Sequence, Tuple

from .events import CalendarEvent

INTERESTING_STATUSES = ('needsAction', 'tentative')

# Sort keys for endpoints sharing a timestamp: ends are processed first
_END = 0
_START = 1


def overlaps(a: CalendarEvent, b: CalendarEvent) -> bool:
    """Half-open overlap test; empty or inverted intervals overlap nothing"""
    if a.start_time >= a.end_time or b.start_time >= b.end_time:
        return False
    return not (a.end_time <= b.start_time or b.end_time <= a.start_time)


def _participates(event: CalendarEvent) -> bool:
    return not event.declined and event.start_time < event.end_time


def detect_conflicts(events: Sequence[CalendarEvent]) -> Dict[str, Tuple[str, ...]]:
    """Map each event id to the ids of the events overlapping it

    Sweeps the sorted interval endpoints while keeping the set of open events,
    O(n log n + k) for k conflicting pairs. Conflict ids come out in the order
    the events appear in `events`.
    """
    endpoints = []
    for index, event in enumerate(events):
        if not _participates(event):
            continue
        endpoints.append((event.start_time, _START, index))
        endpoints.append((event.end_time, _END, index))
    endpoints.sort()

    found: List[set] = [set() for _ in events]
    open_events = set()
    for _, kind, index in endpoints:
        if kind == _END:
            open_events.discard(index)
            continue
        event_id = events[index].id
        for other in open_events:
            # Duplicate records of the same event are not a conflict
            if events[other].id == event_id:
                continue
            found[index].add(other)
            found[other].add(index)
        open_events.add(index)

    conflicts: Dict[str, Tuple[str, ...]] = {event.id: () for event in events}
    for index, event in enumerate(events):
        # Copies sharing an id are merged; declined or empty copies add nothing
        if not _participates(event):
            continue
        ids = (events[other].id for other in sorted(found[index]))
        conflicts[event.id] = tuple(dict.fromkeys(conflicts[event.id] + tuple(ids)))
    return conflicts


def detect_conflicts_pairwise(events: Sequence[CalendarEvent]) -> Dict[str, Tuple[str, ...]]:
    """Quadratic reference version of detect_conflicts(), same output"""
    conflicts: Dict[str, Tuple[str, ...]] = {event.id: () for event in events}
    for event in events:
        if not _participates(event):
            continue
        ids = [other.id for other in events
               if other.id != event.id and _participates(other) and overlaps(event, other)]
        conflicts[event.id] = tuple(dict.fromkeys(conflicts[event.id] + tuple(ids)))
    return conflicts


def is_interesting(event: CalendarEvent, conflicts_with: Sequence[str]) -> bool:
    """An event needs attention when it is unanswered, tentative or conflicting"""
    if event.declined:
        return False
    return event.response_status in INTERESTING_STATUSES or len(conflicts_with) > 0


def enrich(events: Sequence[CalendarEvent]) -> Sequence[CalendarEvent]:
    """Recompute conflicts_with and is_interesting for every event of the day"""
    conflicts = detect_conflicts(events)
    for event in events:
        event.conflicts_with = conflicts.get(event.id, ()) if _participates(event) else ()
        event.is_interesting = is_interesting(event, event.conflicts_with)
    return events
