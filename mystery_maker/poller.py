"""Generation status polling with an optional realtime signal.

StatusPoller re-reads the generation status every `interval` seconds while it
is in progress and stops for good once it observes a terminal state
(completed or failed). When given a realtime event queue, a change event
wakes it early instead of waiting out the interval.

"Package ready" and "generation failed" callbacks fire at most once per
poller, however many ticks observe the terminal state.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from mystery_maker import storage
from mystery_maker.config import get_settings
from mystery_maker.generation import get_package_generation_status
from mystery_maker.models import GenerationStatus

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Awaitable[GenerationStatus]]
Callback = Callable[[GenerationStatus], Any]


class NotificationGuard:
    """One-shot guard: notify() runs its callback the first time only."""

    def __init__(self) -> None:
        self.notified = False

    async def notify(self, callback: Callback | None, status: GenerationStatus) -> bool:
        if self.notified:
            return False
        self.notified = True
        if callback is not None:
            await _maybe_await(callback(status))
        return True

    def reset(self) -> None:
        self.notified = False


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def local_status_fetcher(conversation_id: str) -> GenerationStatus:
    """Read status straight from storage."""
    return get_package_generation_status(conversation_id)


class HttpStatusFetcher:
    """Read status from a running API: GET {base_url}/api/mysteries/{id}/package/status."""

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def __call__(self, conversation_id: str) -> GenerationStatus:
        url = f"{self._base_url}/api/mysteries/{conversation_id}/package/status"
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(url)
            resp.raise_for_status()
        return GenerationStatus.model_validate(resp.json())


class StatusPoller:
    """Poll one conversation's generation status until it settles.

    Args:
        conversation_id: Conversation whose package is tracked.
        fetch_status:    Async callable returning the current GenerationStatus.
        interval:        Seconds between checks. Defaults to 30.
        on_update:       Called with every fetched status.
        on_ready:        Called once when the status becomes completed.
        on_failed:       Called once when the status becomes failed.
        events:          Optional realtime queue; any event triggers a check.
    """

    def __init__(
        self,
        conversation_id: str,
        fetch_status: StatusFetcher = local_status_fetcher,
        interval: float = 30.0,
        on_update: Callback | None = None,
        on_ready: Callback | None = None,
        on_failed: Callback | None = None,
        events: asyncio.Queue | None = None,
    ) -> None:
        self.conversation_id = conversation_id
        self._fetch = fetch_status
        self.interval = interval
        self._on_update = on_update
        self._on_ready = on_ready
        self._on_failed = on_failed
        self._events = events
        self._ready_guard = NotificationGuard()
        self._failed_guard = NotificationGuard()
        self._stopped = asyncio.Event()
        self.last_status: GenerationStatus | None = None
        self.checks = 0

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self) -> None:
        self._stopped.set()

    async def check(self) -> GenerationStatus:
        """One status read; fires callbacks and stops on terminal states."""
        status = await self._fetch(self.conversation_id)
        self.checks += 1
        self.last_status = status
        if self._on_update is not None:
            await _maybe_await(self._on_update(status))

        if status.status == "completed":
            if await self._ready_guard.notify(self._on_ready, status):
                logger.info("Package ready for %s", self.conversation_id)
            self.stop()
        elif status.status == "failed":
            if await self._failed_guard.notify(self._on_failed, status):
                logger.info("Generation failed for %s: %s",
                            self.conversation_id, status.current_step)
            self.stop()
        return status

    async def _wait(self) -> None:
        """Sleep for the interval, waking early on stop() or a realtime event."""
        waiters = [asyncio.ensure_future(self._stopped.wait())]
        if self._events is not None:
            waiters.append(asyncio.ensure_future(self._events.get()))
        try:
            await asyncio.wait(waiters, timeout=self.interval,
                               return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

    async def run(self) -> GenerationStatus | None:
        """Check immediately, then keep checking until terminal or stopped."""
        while not self.stopped:
            try:
                await self.check()
            except (httpx.HTTPError, ValueError) as e:
                logger.error("Error checking generation status for %s: %s",
                             self.conversation_id, e)
            if self.stopped:
                break
            await self._wait()
        return self.last_status


async def watch_package(
    conversation_id: str,
    interval: float | None = None,
    on_update: Callback | None = None,
    on_ready: Callback | None = None,
    on_failed: Callback | None = None,
) -> GenerationStatus | None:
    """Poll local storage, woken early by realtime package change events.

    `interval` defaults to the STATUS_POLL_INTERVAL setting.
    """
    if interval is None:
        interval = get_settings().poll_interval
    queue = storage.subscribe(conversation_id)
    try:
        poller = StatusPoller(
            conversation_id,
            interval=interval,
            on_update=on_update,
            on_ready=on_ready,
            on_failed=on_failed,
            events=queue,
        )
        return await poller.run()
    finally:
        storage.unsubscribe(conversation_id, queue)
