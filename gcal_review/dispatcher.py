"""
Command dispatcher
Runs state machine commands as background tasks and posts their results back
"""

import asyncio
import logging
import webbrowser
from typing import Callable, Set

from .review import (
    Command,
    FetchError,
    FetchResult,
    LinkError,
    LinkOpened,
    PatchError,
    PatchResult,
    RequestOpenLink,
    RequestPatch,
    RequestReload,
    Result,
)

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Maps each command to one backend call; every call posts exactly one result

    `backend` must provide `list_events(day)` and `patch_attendees(event_id, attendees)`.
    `post` receives the results and is the only way they reach the state machine.
    """

    def __init__(self, backend, post: Callable[[Result], None],
                 open_link: Callable[[str], bool] = webbrowser.open):
        self.backend = backend
        self.post = post
        self.open_link = open_link
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, command: Command) -> asyncio.Task:
        if isinstance(command, RequestReload):
            # Older reloads keep running; the state machine drops their stale results
            coro = self._reload(command)
        elif isinstance(command, RequestPatch):
            coro = self._patch(command)
        elif isinstance(command, RequestOpenLink):
            coro = self._open(command)
        else:
            raise TypeError(f"unknown command: {command!r}")

        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def wait(self):
        """Wait for every dispatched command to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _reload(self, command: RequestReload):
        try:
            records = await self.backend.list_events(command.day)
        except Exception as e:
            logger.debug("Reload of %s failed: %s", command.day, e)
            self.post(FetchError(command.day, command.token, f"❌ Failed to load {command.day}: {e}"))
            return
        self.post(FetchResult(command.day, command.token, records))

    async def _patch(self, command: RequestPatch):
        try:
            raw_event = await self.backend.patch_attendees(command.event_id, command.attendees)
        except Exception as e:
            logger.debug("Patch of %s failed: %s", command.event_id, e)
            what = "RSVP update" if command.status is not None else "Note update"
            self.post(PatchError(command.event_id, f"❌ {what} failed: {e}"))
            return
        self.post(PatchResult(command.event_id, command.status, command.note, raw_event))

    async def _open(self, command: RequestOpenLink):
        try:
            opened = await asyncio.to_thread(self.open_link, command.url)
        except Exception as e:
            self.post(LinkError(command.url, f"❌ Could not open {command.url}: {e}"))
            return
        if opened is False:
            self.post(LinkError(command.url, f"❌ No browser available for {command.url}"))
            return
        self.post(LinkOpened(command.url))
