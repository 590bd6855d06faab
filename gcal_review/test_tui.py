"""
Tests for key handling in the terminal UI
No terminal needed: keys are fed as get_wch() would return them
"""

import curses
from datetime import date

import pytest

from gcal_review.review import (
    Action,
    Browsing,
    EnteringDate,
    EnteringNote,
    FetchResult,
    InsertText,
    RequestPatch,
    ReviewStateMachine,
)
from gcal_review.tui import key_to_action

DAY = date(2024, 3, 6)


@pytest.mark.parametrize('key, action', [
    ('\t', Action.NEXT_INTERESTING),
    ('k', Action.CURSOR_UP),
    (curses.KEY_UP, Action.CURSOR_UP),
    ('j', Action.CURSOR_DOWN),
    (curses.KEY_DOWN, Action.CURSOR_DOWN),
    ('A', Action.ACCEPT),
    ('D', Action.DECLINE),
    ('o', Action.OPEN_LINK),
    ('t', Action.GOTO_TODAY),
    ('R', Action.RELOAD),
    (curses.KEY_RIGHT, Action.NEXT_DAY),
    (curses.KEY_LEFT, Action.PREV_DAY),
    ('\x14', Action.JUMP_TO_DAY),
    ('n', Action.ADD_NOTE),
    ('q', Action.QUIT),
    ('\x03', Action.QUIT),
])
def test_browsing_keys(key, action):
    assert key_to_action(key, Browsing()) == action


@pytest.mark.parametrize('key', ['x', 'é', ' ', curses.KEY_RESIZE])
def test_unbound_browsing_keys(key):
    assert key_to_action(key, Browsing()) is None


@pytest.mark.parametrize('key, action', [
    ('\n', Action.CONFIRM),
    (curses.KEY_ENTER, Action.CONFIRM),
    ('\x1b', Action.CANCEL),
    ('\x03', Action.QUIT),
    ('\x7f', Action.BACKSPACE),
    ('\x08', Action.BACKSPACE),
    (curses.KEY_BACKSPACE, Action.BACKSPACE),
    (curses.KEY_UP, None),
    ('\x01', None),
])
def test_input_mode_keys(key, action):
    assert key_to_action(key, EnteringNote('a')) == action
    assert key_to_action(key, EnteringDate()) == action


@pytest.mark.parametrize('text', ['a', ' ', 'q', 'A', 'é', 'ü', 'ß', '日', 'Ж'])
def test_input_mode_accepts_any_character(text):
    """Letters that are commands while browsing are plain text in a prompt"""
    assert key_to_action(text, EnteringNote('a')) == InsertText(text)


def test_typing_a_non_ascii_note():
    print("\n1. Loading a day with one invitation...")
    machine = ReviewStateMachine(DAY)
    [reload] = machine.start()
    machine.apply(FetchResult(DAY, reload.token, [{
        'id': 'lunch',
        'summary': 'Lunch',
        'start': {'dateTime': '2024-03-06T12:00:00+01:00'},
        'end': {'dateTime': '2024-03-06T13:00:00+01:00'},
        'attendees': [{'email': 'me@example.com', 'self': True, 'responseStatus': 'needsAction'}],
    }]))

    print("\n2. Typing the note key by key...")
    commands = []
    for key in ['n', 'C', 'a', 'f', 'é', ' ', '日', '本', '\x7f', '\n']:
        action = key_to_action(key, machine.state.mode)
        assert action is not None, f"Key {key!r} was dropped"
        commands.extend(machine.handle(action))

    [patch] = commands
    assert isinstance(patch, RequestPatch)
    assert patch.note == 'Café 日'
    assert patch.attendees[0].comment == 'Café 日'
    assert isinstance(machine.state.mode, Browsing)
    print("✓ Non-ASCII note sent")
