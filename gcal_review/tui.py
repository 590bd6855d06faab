"""
Interactive terminal review of one calendar day
Curses front end for the ReviewStateMachine
"""

import asyncio
import curses
import logging
from typing import Optional, Union

from .dispatcher import CommandDispatcher
from .events import CalendarEvent
from .review import (
    Action,
    Browsing,
    EnteringDate,
    EnteringNote,
    InsertText,
    ReviewStateMachine,
)

logger = logging.getLogger(__name__)

KEY_ESC = 27
KEY_TAB = 9
KEY_CTRL_C = 3
KEY_CTRL_T = 20

BROWSING_KEYS = {
    KEY_TAB: Action.NEXT_INTERESTING,
    curses.KEY_UP: Action.CURSOR_UP,
    ord('k'): Action.CURSOR_UP,
    curses.KEY_DOWN: Action.CURSOR_DOWN,
    ord('j'): Action.CURSOR_DOWN,
    ord('A'): Action.ACCEPT,
    ord('D'): Action.DECLINE,
    ord('o'): Action.OPEN_LINK,
    ord('t'): Action.GOTO_TODAY,
    ord('R'): Action.RELOAD,
    curses.KEY_RIGHT: Action.NEXT_DAY,
    curses.KEY_LEFT: Action.PREV_DAY,
    KEY_CTRL_T: Action.JUMP_TO_DAY,
    ord('n'): Action.ADD_NOTE,
    ord('q'): Action.QUIT,
    KEY_CTRL_C: Action.QUIT,
}

INPUT_KEYS = {
    ord('\n'): Action.CONFIRM,
    curses.KEY_ENTER: Action.CONFIRM,
    KEY_ESC: Action.CANCEL,
    KEY_CTRL_C: Action.QUIT,
    curses.KEY_BACKSPACE: Action.BACKSPACE,
    127: Action.BACKSPACE,
    8: Action.BACKSPACE,
}

HELP_TEXT = ("tab: Next todo | ↑/↓: Navigate | ←/→: Prev/Next Day | t: Today | ctrl+t: Jump to day | "
             "A: Accept | D: Decline | n: Note | o: Open | R: Reload | q: Quit")


def key_to_action(key: Union[str, int], mode) -> Optional[Union[Action, InsertText]]:
    """Translate a get_wch() key into an action for the current mode

    Characters arrive as str (any script), function keys as int key codes.
    """
    if isinstance(key, str):
        if key.isprintable() and not isinstance(mode, Browsing):
            return InsertText(key)
        key = ord(key)
    if isinstance(mode, Browsing):
        return BROWSING_KEYS.get(key)
    return INPUT_KEYS.get(key)


class CalendarTUI:
    """Terminal UI for reviewing a day"""

    def __init__(self, stdscr, machine: ReviewStateMachine, backend):
        self.stdscr = stdscr
        self.machine = machine
        self.results: asyncio.Queue = asyncio.Queue()
        self.dispatcher = CommandDispatcher(backend, self.results.put_nowait)
        self.scroll_offset = 0

        # Spinner for loading states
        self.spinner_frames = ['⣾', '⣽', '⣻', '⢿', '⡿', '⣟', '⣯', '⣷']
        self.spinner_index = 0

        curses.start_color()
        curses.use_default_colors()
        curses.init_pair(1, curses.COLOR_BLACK, curses.COLOR_CYAN)    # Title / selection
        curses.init_pair(2, curses.COLOR_RED, -1)                     # Conflict / errors
        curses.init_pair(3, curses.COLOR_GREEN, -1)                   # Accepted
        curses.init_pair(4, curses.COLOR_YELLOW, -1)                  # Needs action / tentative
        curses.init_pair(5, curses.COLOR_WHITE, -1)                   # Declined (dimmed)
        curses.init_pair(6, curses.COLOR_CYAN, -1)                    # Selected title

        # Hide cursor
        curses.curs_set(0)

    @property
    def state(self):
        return self.machine.state

    def dispatch(self, commands):
        for command in commands:
            logger.debug("Dispatching %r", command)
            self.dispatcher.dispatch(command)

    def _status_attr(self, event: CalendarEvent):
        if event.response_status == 'accepted':
            return curses.color_pair(3)
        if event.response_status == 'declined':
            return curses.color_pair(5) | curses.A_DIM
        if event.response_status in ('needsAction', 'tentative'):
            return curses.color_pair(4)
        return curses.A_NORMAL

    def draw_header(self):
        _, width = self.stdscr.getmaxyx()
        title = f" {self.state.day.strftime('%Y-%m-%d %a')} "
        if self.state.busy:
            title += f"{self.spinner_frames[self.spinner_index]} "
        try:
            self.stdscr.addstr(0, 2, " " * max(0, width - 4))
            self.stdscr.addstr(0, 2, title[:width - 4], curses.color_pair(1) | curses.A_BOLD)
        except curses.error:
            pass

    def draw_event_row(self, y: int, event: CalendarEvent, is_selected: bool, conflicts_with_selected: bool):
        _, width = self.stdscr.getmaxyx()
        mark = event.get_response_char()
        conflict = " !" if event.has_conflict else ""

        title_attr = curses.color_pair(6) | curses.A_BOLD if is_selected else curses.A_NORMAL
        if event.declined:
            title_attr = curses.color_pair(5) | curses.A_DIM
        desc_attr = curses.color_pair(2) | curses.A_BOLD if conflicts_with_selected else curses.A_DIM

        note = f"  ✎ {event.note}" if event.note else ""
        try:
            self.stdscr.addstr(y, 2, "│" if is_selected else " ", curses.color_pair(6))
            self.stdscr.addstr(y, 4, mark, self._status_attr(event))
            self.stdscr.addstr(y, 6, event.summary[:max(0, width - 8)], title_attr)
            desc = f"{event.get_time_str()}{conflict}{note}"
            self.stdscr.addstr(y + 1, 2, "│" if is_selected else " ", curses.color_pair(6))
            self.stdscr.addstr(y + 1, 4, desc[:max(0, width - 6)], desc_attr)
        except curses.error:
            pass

    def _adjust_scroll(self, selected: int, max_rows: int):
        if selected >= self.scroll_offset + max_rows:
            self.scroll_offset = selected - max_rows + 1
        elif selected < self.scroll_offset:
            self.scroll_offset = selected

    def draw_events(self, start_y: int):
        height, _ = self.stdscr.getmaxyx()
        state = self.state
        max_rows = max(1, (height - start_y - 4) // 2)

        if not state.events:
            message = "Loading..." if state.loading else "No events"
            try:
                self.stdscr.addstr(start_y, 4, message, curses.A_DIM)
            except curses.error:
                pass
            return

        selected = state.mode.selected_index if isinstance(state.mode, Browsing) else -1
        selected_event = state.selected_event
        selected_conflicts = set(selected_event.conflicts_with) if selected_event else set()
        if selected >= 0:
            self._adjust_scroll(selected, max_rows)

        visible = state.events[self.scroll_offset:self.scroll_offset + max_rows]
        for row, event in enumerate(visible):
            index = self.scroll_offset + row
            self.draw_event_row(
                start_y + row * 2,
                event,
                is_selected=index == selected,
                conflicts_with_selected=event.id in selected_conflicts and index != selected,
            )

    def draw_prompt(self, label: str, text: str):
        height, width = self.stdscr.getmaxyx()
        try:
            self.stdscr.addstr(height - 3, 2, f"{label}: {text}"[:width - 4], curses.A_BOLD)
            self.stdscr.addstr("_", curses.A_BLINK)
        except curses.error:
            pass

    def draw_footer(self):
        """Draw the footer with help text and status"""
        height, width = self.stdscr.getmaxyx()
        state = self.state
        try:
            self.stdscr.addstr(height - 2, 0, "─" * width)
            self.stdscr.addstr(height - 1, 2, HELP_TEXT[:width - 4], curses.A_DIM)
            if state.last_error:
                self.stdscr.addstr(height - 4, 2, state.last_error[:width - 4], curses.color_pair(2))
            elif state.status_message:
                self.stdscr.addstr(height - 4, 2, state.status_message[:width - 4], curses.color_pair(3))
        except curses.error:
            pass

    def draw(self):
        """Draw the entire UI"""
        self.stdscr.erase()
        mode = self.state.mode

        self.draw_header()
        if isinstance(mode, EnteringDate):
            self.draw_prompt("Date", mode.text)
        elif isinstance(mode, EnteringNote):
            event = self.state.find_event(mode.event_id)
            if event:
                try:
                    self.stdscr.addstr(2, 4, f"{event.get_time_str()} {event.summary}")
                except curses.error:
                    pass
            self.draw_prompt("Note", mode.text)
        else:
            self.draw_events(2)
        self.draw_footer()

        self.stdscr.refresh()

    def process_results(self) -> bool:
        """Apply every result that arrived since the last tick"""
        changed = False
        while not self.results.empty():
            result = self.results.get_nowait()
            logger.debug("Result %r", result)
            self.dispatch(self.machine.apply(result))
            changed = True
        return changed

    async def run(self):
        """Main event loop"""
        self.stdscr.nodelay(True)
        self.stdscr.keypad(True)
        self.dispatch(self.machine.start())
        self.draw()

        while True:
            # Check for key input (non-blocking)
            try:
                key = self.stdscr.get_wch()
            except curses.error:
                key = None

            # Small delay to prevent busy-waiting
            await asyncio.sleep(0.05)

            needs_redraw = self.process_results()

            if self.state.busy:
                self.spinner_index = (self.spinner_index + 1) % len(self.spinner_frames)
                self.draw_header()
                self.stdscr.refresh()

            if key is not None:
                mode = self.state.mode
                action = key_to_action(key, mode)
                if action == Action.QUIT and isinstance(mode, Browsing):
                    break
                if action is not None:
                    if isinstance(mode, Browsing):
                        self.state.status_message = ''
                    self.dispatch(self.machine.handle(action))
                    needs_redraw = True

            if needs_redraw:
                self.draw()
