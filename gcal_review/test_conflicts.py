"""
Tests for the event model, conflict detection and interest classification
No MCP server or terminal needed
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from gcal_review.conflicts import (
    detect_conflicts,
    detect_conflicts_pairwise,
    enrich,
    is_interesting,
    overlaps,
)
from gcal_review.events import CalendarEvent, IngestionError, load_events

TZ = timezone(timedelta(hours=-5))
DAY = datetime(2024, 3, 4, tzinfo=TZ)


def at(hour: int, minute: int = 0) -> datetime:
    return DAY.replace(hour=hour, minute=minute)


def raw_event(event_id, start, end, status='accepted', creator_self=False, **extra):
    data = {
        'id': event_id,
        'summary': f'Event {event_id}',
        'start': {'dateTime': start.isoformat()},
        'end': {'dateTime': end.isoformat()},
        'creator': {'self': creator_self},
        'htmlLink': f'https://calendar.google.com/event?eid={event_id}',
        'attendees': [
            {'email': 'me@example.com', 'self': True, 'responseStatus': status},
            {'email': 'boss@example.com', 'responseStatus': 'accepted'},
        ],
    }
    if status is None:
        data['attendees'] = [{'email': 'boss@example.com', 'responseStatus': 'accepted'}]
    data.update(extra)
    return data


def make_event(event_id, start, end, status='accepted', **extra) -> CalendarEvent:
    return CalendarEvent(raw_event(event_id, start, end, status, **extra))


def test_ingestion():
    """Test building events from raw records"""
    print("\n1. Testing response status of the viewer...")
    event = make_event('a', at(9), at(10), 'needsAction')
    assert event.response_status == 'needsAction', f"Expected needsAction, got {event.response_status}"
    assert event.start_time == at(9)
    assert event.end_time == at(10)
    assert event.html_link.endswith('eid=a')
    print("✓ Own attendee entry decides the status")

    print("\n2. Testing 'unknown' normalization for events you created...")
    own = make_event('own', at(9), at(10), status=None, creator_self=True)
    foreign = make_event('foreign', at(9), at(10), status=None, creator_self=False)
    assert own.response_status == 'accepted', "Creator without attendee entry should count as accepted"
    assert foreign.response_status == 'unknown', "Non-creator without attendee entry stays unknown"
    print("✓ Creator events normalized to accepted")

    print("\n3. Testing 'Z' suffix timestamps...")
    utc = CalendarEvent({
        'id': 'utc',
        'start': {'dateTime': '2024-03-04T14:00:00Z'},
        'end': {'dateTime': '2024-03-04T15:00:00Z'},
    })
    assert utc.start_time == at(9), "14:00Z is 09:00 at UTC-5"
    assert utc.summary == 'No Title'
    print("✓ UTC timestamps parsed")

    print("\n4. Testing note comes from own attendee entry...")
    noted = CalendarEvent(raw_event('n', at(9), at(10), attendees=[
        {'email': 'me@example.com', 'self': True, 'responseStatus': 'tentative', 'comment': 'running late'},
    ]))
    assert noted.note == 'running late'
    assert make_event('x', at(9), at(10)).note is None
    print("✓ Notes read from the attendee comment")


def test_ingestion_rejects_records_without_times():
    """All-day and broken records are skipped, not fatal"""
    today = DAY.date()
    records = [
        raw_event('ok', at(9), at(10)),
        {
            'id': 'allday',
            'summary': 'Home',
            'start': {'date': today.isoformat(), 'dateTime': ''},
            'end': {'date': (today + timedelta(days=1)).isoformat(), 'dateTime': ''},
        },
        {'id': 'nostart', 'end': {'dateTime': at(10).isoformat()}},
        {'id': 'garbage', 'start': {'dateTime': 'not a time'}, 'end': {'dateTime': at(10).isoformat()}},
    ]

    with pytest.raises(IngestionError):
        CalendarEvent(records[1])

    events, errors = load_events(records)
    assert [e.id for e in events] == ['ok']
    assert sorted(e.event_id for e in errors) == ['allday', 'garbage', 'nostart']
    print("✓ Only the timed event survives ingestion")


def test_overlap_rule():
    """Half-open interval overlap"""
    a = make_event('a', at(9), at(10))
    b = make_event('b', at(9, 30), at(10, 30))
    c = make_event('c', at(10), at(11))
    empty = make_event('empty', at(9, 30), at(9, 30))
    inverted = make_event('inv', at(10), at(9))

    assert overlaps(a, b) and overlaps(b, a)
    assert not overlaps(a, c), "Back-to-back events must not overlap"
    assert not overlaps(c, a)
    assert not overlaps(a, empty), "Zero-length events overlap nothing"
    assert not overlaps(a, inverted), "Inverted events overlap nothing"
    assert not overlaps(inverted, inverted)


def test_scenario_needs_action_accepted_declined():
    """A(09-10 needsAction), B(09:30-10:30 accepted), C(11-12 declined)"""
    events = enrich([
        make_event('A', at(9), at(10), 'needsAction'),
        make_event('B', at(9, 30), at(10, 30), 'accepted'),
        make_event('C', at(11), at(12), 'declined'),
    ])
    a, b, c = events

    assert a.conflicts_with == ('B',)
    assert b.conflicts_with == ('A',)
    assert c.conflicts_with == ()
    assert a.is_interesting
    assert b.is_interesting
    assert not c.is_interesting
    print("✓ A and B conflict, C is left alone")


def test_declined_events_never_conflict():
    events = enrich([
        make_event('A', at(9), at(11), 'accepted'),
        make_event('B', at(9, 30), at(10, 30), 'declined'),
        make_event('C', at(10), at(12), 'tentative'),
    ])
    for event in events:
        assert 'B' not in event.conflicts_with, f"{event.id} conflicts with declined event"
    assert events[1].conflicts_with == ()
    assert not events[1].is_interesting
    assert events[0].conflicts_with == ('C',)


def test_back_to_back_events_do_not_conflict():
    events = enrich([
        make_event('A', at(9), at(10)),
        make_event('B', at(10), at(11)),
        make_event('C', at(11), at(12)),
    ])
    assert all(e.conflicts_with == () for e in events)
    assert not any(e.is_interesting for e in events)


def test_degenerate_intervals_and_duplicate_ids():
    events = enrich([
        make_event('A', at(9), at(12)),
        make_event('zero', at(10), at(10)),
        make_event('inverted', at(11), at(10)),
        make_event('dup', at(9), at(10)),
        make_event('dup', at(9, 30), at(10, 30)),
    ])
    by_index = [e.conflicts_with for e in events]

    assert by_index[1] == () and by_index[2] == (), "Degenerate intervals take part in no conflicts"
    # Two records with the same id are never compared with each other
    assert by_index[3] == ('A',)
    assert by_index[4] == ('A',)
    assert by_index[0] == ('dup',)


def test_sweep_matches_pairwise():
    """The endpoint sweep and the quadratic version agree on random days"""
    rng = random.Random(1234)
    statuses = ['accepted', 'declined', 'needsAction', 'tentative']
    for _ in range(200):
        events = []
        for i in range(rng.randint(0, 15)):
            start = at(8) + timedelta(minutes=15 * rng.randint(0, 40))
            end = start + timedelta(minutes=15 * rng.randint(-1, 8))
            events.append(make_event(f'e{i}', start, end, rng.choice(statuses)))

        sweep = detect_conflicts(events)
        pairwise = detect_conflicts_pairwise(events)
        assert sweep == pairwise

        for event in events:
            for other_id in sweep[event.id]:
                assert event.id in sweep[other_id], "Conflict relation must be symmetric"
                other = next(e for e in events if e.id == other_id)
                assert overlaps(event, other)
                assert not event.declined and not other.declined


def test_enrich_is_idempotent():
    events = [
        make_event('A', at(9), at(10), 'needsAction'),
        make_event('B', at(9, 30), at(10, 30)),
        make_event('C', at(13), at(14), 'tentative'),
        make_event('D', at(15), at(16)),
    ]
    enrich(events)
    first = [(e.conflicts_with, e.is_interesting) for e in events]
    enrich(events)
    second = [(e.conflicts_with, e.is_interesting) for e in events]
    assert first == second
    assert [interesting for _, interesting in first] == [True, True, True, False]


def test_is_interesting():
    accepted = make_event('a', at(9), at(10), 'accepted')
    unknown = make_event('u', at(9), at(10), status=None)
    declined = make_event('d', at(9), at(10), 'declined')

    assert not is_interesting(accepted, ())
    assert is_interesting(accepted, ('x',))
    assert is_interesting(make_event('n', at(9), at(10), 'needsAction'), ())
    assert is_interesting(make_event('t', at(9), at(10), 'tentative'), ())
    # Not being on the guest list is not a pending invitation
    assert not is_interesting(unknown, ())
    assert is_interesting(unknown, ('x',))
    assert not is_interesting(declined, ('x',))


def test_declined_copy_of_a_conflicting_event():
    """A declined record does not pick up the conflicts of its accepted twin"""
    events = enrich([
        make_event('A', at(9), at(10)),
        make_event('dup', at(9, 30), at(10, 30), 'accepted'),
        make_event('dup', at(9, 30), at(10, 30), 'declined'),
    ])
    accepted_copy, declined_copy = events[1], events[2]

    assert events[0].conflicts_with == ('dup',)
    assert accepted_copy.conflicts_with == ('A',)
    assert declined_copy.conflicts_with == (), "Declined copy inherited conflicts"
    assert not declined_copy.is_interesting
    assert detect_conflicts(events) == detect_conflicts_pairwise(events)
