"""
Review state machine

Holds the day being reviewed, its enriched events, the input mode and the
selection cursor. Actions (key presses) and results (from the dispatcher) go in,
commands for the dispatcher come out. Nothing here does I/O.
"""

import enum
import itertools
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple, Union

from .conflicts import enrich
from .events import Attendee, CalendarEvent, load_events

logger = logging.getLogger(__name__)

DATE_FORMAT = '%Y-%m-%d'


class Action(enum.Enum):
    NEXT_INTERESTING = 'next_interesting'
    CURSOR_UP = 'cursor_up'
    CURSOR_DOWN = 'cursor_down'
    ACCEPT = 'accept'
    DECLINE = 'decline'
    OPEN_LINK = 'open_link'
    NEXT_DAY = 'next_day'
    PREV_DAY = 'prev_day'
    GOTO_TODAY = 'goto_today'
    RELOAD = 'reload'
    JUMP_TO_DAY = 'jump_to_day'
    ADD_NOTE = 'add_note'
    CONFIRM = 'confirm'
    CANCEL = 'cancel'
    BACKSPACE = 'backspace'
    QUIT = 'quit'


@dataclass(frozen=True)
class InsertText:
    """Text typed while a date or note is being entered"""
    text: str


# UI modes

@dataclass(frozen=True)
class Browsing:
    selected_index: int = 0


@dataclass(frozen=True)
class EnteringDate:
    text: str = ''


@dataclass(frozen=True)
class EnteringNote:
    event_id: str
    text: str = ''


Mode = Union[Browsing, EnteringDate, EnteringNote]


# Commands for the dispatcher

@dataclass(frozen=True)
class RequestReload:
    day: date
    token: int


@dataclass(frozen=True)
class RequestPatch:
    event_id: str
    attendees: Tuple[Attendee, ...]
    status: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class RequestOpenLink:
    url: str


Command = Union[RequestReload, RequestPatch, RequestOpenLink]


# Results posted back by the dispatcher

@dataclass(frozen=True)
class FetchResult:
    day: date
    token: int
    events: List[Dict]


@dataclass(frozen=True)
class FetchError:
    day: date
    token: int
    message: str


@dataclass(frozen=True)
class PatchResult:
    event_id: str
    new_status: Optional[str] = None
    new_note: Optional[str] = None
    raw_event: Optional[Dict] = None


@dataclass(frozen=True)
class PatchError:
    event_id: str
    message: str


@dataclass(frozen=True)
class LinkOpened:
    url: str


@dataclass(frozen=True)
class LinkError:
    url: str
    message: str


Result = Union[FetchResult, FetchError, PatchResult, PatchError, LinkOpened, LinkError]


@dataclass
class ReviewState:
    day: date
    token: int = 0
    events: List[CalendarEvent] = field(default_factory=list)
    mode: Mode = field(default_factory=Browsing)
    last_error: str = ''
    status_message: str = ''
    loading: bool = True
    pending_patches: int = 0

    @property
    def busy(self) -> bool:
        return self.loading or self.pending_patches > 0

    @property
    def selected_event(self) -> Optional[CalendarEvent]:
        if not isinstance(self.mode, Browsing):
            return None
        index = self.mode.selected_index
        if 0 <= index < len(self.events):
            return self.events[index]
        return None

    def find_event(self, event_id: str) -> Optional[CalendarEvent]:
        for event in self.events:
            if event.id == event_id:
                return event
        return None


def next_interesting_index(events: List[CalendarEvent], index: int) -> int:
    """Index of the next interesting event after `index`, wrapping around

    The selected event itself is not a candidate; returns `index` unchanged
    when no other event is interesting.
    """
    count = len(events)
    for step in range(1, count):
        candidate = (index + step) % count
        if events[candidate].is_interesting:
            return candidate
    return index


def parse_date(text: str) -> date:
    """Parse a YYYY-MM-DD date, raising ValueError with a readable message"""
    try:
        return datetime.strptime(text.strip(), DATE_FORMAT).date()
    except ValueError:
        raise ValueError(f"invalid date: {text!r} (expected YYYY-MM-DD)")


class ReviewStateMachine:
    """Processes one action or result at a time and returns the commands to run"""

    def __init__(self, day: date, today: Callable[[], date] = date.today):
        self._today = today
        self._tokens = itertools.count(1)
        self.state = ReviewState(day=day, token=next(self._tokens))

    def start(self) -> List[Command]:
        """Commands to issue when the review starts: load the initial day"""
        return [RequestReload(self.state.day, self.state.token)]

    # Actions

    def handle(self, action: Union[Action, InsertText]) -> List[Command]:
        mode = self.state.mode
        if isinstance(mode, Browsing):
            return self._handle_browsing(action, mode)
        if isinstance(mode, EnteringDate):
            return self._handle_entering_date(action, mode)
        return self._handle_entering_note(action, mode)

    def _handle_browsing(self, action, mode: Browsing) -> List[Command]:
        state = self.state
        events = state.events

        if action == Action.NEXT_INTERESTING:
            if events:
                state.mode = Browsing(next_interesting_index(events, mode.selected_index))
            return []

        if action == Action.CURSOR_UP:
            if mode.selected_index > 0:
                state.mode = Browsing(mode.selected_index - 1)
            return []

        if action == Action.CURSOR_DOWN:
            if mode.selected_index < len(events) - 1:
                state.mode = Browsing(mode.selected_index + 1)
            return []

        if action == Action.ACCEPT:
            return self._request_status('accepted')

        if action == Action.DECLINE:
            return self._request_status('declined')

        if action == Action.OPEN_LINK:
            event = state.selected_event
            if event is None:
                state.last_error = "No event selected"
                return []
            if not event.html_link:
                state.last_error = f"{event.summary} has no link"
                return []
            return [RequestOpenLink(event.html_link)]

        if action == Action.NEXT_DAY:
            return self._reload(state.day + timedelta(days=1))

        if action == Action.PREV_DAY:
            return self._reload(state.day - timedelta(days=1))

        if action == Action.GOTO_TODAY:
            return self._reload(self._today())

        if action == Action.RELOAD:
            return self._reload(state.day)

        if action == Action.JUMP_TO_DAY:
            state.last_error = ''
            state.mode = EnteringDate(state.day.strftime(DATE_FORMAT))
            return []

        if action == Action.ADD_NOTE:
            event = self._patchable_event()
            if event is None:
                return []
            state.last_error = ''
            state.mode = EnteringNote(event.id, event.note or '')
            return []

        return []

    def _handle_entering_date(self, action, mode: EnteringDate) -> List[Command]:
        state = self.state

        if isinstance(action, InsertText):
            state.mode = EnteringDate(mode.text + action.text)
            return []

        if action == Action.BACKSPACE:
            state.mode = EnteringDate(mode.text[:-1])
            return []

        if action in (Action.CANCEL, Action.QUIT):
            state.last_error = ''
            state.mode = Browsing()
            return []

        if action == Action.CONFIRM:
            try:
                day = parse_date(mode.text)
            except ValueError as e:
                state.last_error = str(e)
                return []
            return self._reload(day)

        return []

    def _handle_entering_note(self, action, mode: EnteringNote) -> List[Command]:
        state = self.state

        if isinstance(action, InsertText):
            state.mode = EnteringNote(mode.event_id, mode.text + action.text)
            return []

        if action == Action.BACKSPACE:
            state.mode = EnteringNote(mode.event_id, mode.text[:-1])
            return []

        if action in (Action.CANCEL, Action.QUIT):
            state.last_error = ''
            state.mode = self._browsing_at(mode.event_id)
            return []

        if action == Action.CONFIRM:
            state.mode = self._browsing_at(mode.event_id)
            event = state.find_event(mode.event_id)
            if event is None:
                state.last_error = "Event not found"
                return []
            state.last_error = ''
            state.pending_patches += 1
            return [RequestPatch(event.id, event.with_response(note=mode.text), note=mode.text)]

        return []

    def _browsing_at(self, event_id: str) -> Browsing:
        for index, event in enumerate(self.state.events):
            if event.id == event_id:
                return Browsing(index)
        return Browsing()

    def _patchable_event(self) -> Optional[CalendarEvent]:
        state = self.state
        event = state.selected_event
        if event is None:
            state.last_error = "No event selected"
            return None
        if event.own_attendee is None:
            state.last_error = f"You are not an attendee of {event.summary}"
            return None
        return event

    def _request_status(self, status: str) -> List[Command]:
        event = self._patchable_event()
        if event is None:
            return []
        self.state.last_error = ''
        self.state.pending_patches += 1
        return [RequestPatch(event.id, event.with_response(status=status), status=status)]

    def _reload(self, day: date) -> List[Command]:
        """Replace the state with an empty one for `day` and request its events"""
        self.state = ReviewState(day=day, token=next(self._tokens))
        logger.debug("Reload %s (token %d)", day, self.state.token)
        return [RequestReload(day, self.state.token)]

    # Results

    def apply(self, result: Result) -> List[Command]:
        state = self.state

        if isinstance(result, (FetchResult, FetchError)):
            if result.token != state.token or result.day != state.day:
                logger.debug("Discarding stale reload result for %s (token %d, current %d)",
                             result.day, result.token, state.token)
                return []
            state.loading = False
            if isinstance(result, FetchError):
                state.events = []
                state.last_error = result.message
                return []
            events, errors = load_events(result.events)
            state.events = list(enrich(events))
            if isinstance(state.mode, Browsing):
                state.mode = Browsing()
            state.last_error = ''
            if errors:
                state.status_message = f"Skipped {len(errors)} malformed event(s)"
            return []

        if isinstance(result, (PatchResult, PatchError)):
            state.pending_patches = max(0, state.pending_patches - 1)
            event = state.find_event(result.event_id)
            if isinstance(result, PatchError):
                state.last_error = result.message
                return []
            if event is None:
                logger.debug("Patch result for %s is not on %s, ignoring", result.event_id, state.day)
                return []
            event.apply_patch(result.new_status, result.new_note)
            # Conflicts are recomputed over the whole day, never per event
            enrich(state.events)
            state.last_error = ''
            if result.new_status is not None:
                state.status_message = f"{event.summary}: {result.new_status}"
            else:
                state.status_message = f"Note saved on {event.summary}"
            return []

        if isinstance(result, LinkOpened):
            state.status_message = f"Opened {result.url} in browser"
            return []

        if isinstance(result, LinkError):
            state.last_error = result.message
            return []

        raise TypeError(f"unexpected result: {result!r}")
