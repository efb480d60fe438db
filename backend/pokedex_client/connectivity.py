# backend/pokedex_client/connectivity.py

import asyncio
import logging
from typing import Awaitable, Callable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Connectivity:
    """
    Online/offline signal.

    Whatever observes the network (an OS hook, a health probe, a test) calls
    set_online/set_offline; fetches await wait_for_online before going out.
    """

    def __init__(self, online: bool = True):
        self._online = asyncio.Event()
        if online:
            self._online.set()
        self._listeners: List[Callable[[bool], None]] = []

    @property
    def is_online(self) -> bool:
        return self._online.is_set()

    def set_online(self) -> None:
        if not self.is_online:
            logger.info("Connectivity restored")
            self._online.set()
            self._notify(True)

    def set_offline(self) -> None:
        if self.is_online:
            logger.warning("Connectivity lost; new requests will wait")
            self._online.clear()
            self._notify(False)

    async def wait_for_online(self) -> None:
        await self._online.wait()

    def add_listener(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Registers `listener(is_online)`; returns a function that unregisters it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, online: bool) -> None:
        for listener in list(self._listeners):
            listener(online)


def when_online(connectivity: Connectivity, fetch: Callable[[], Awaitable[T]]) -> Callable[[], Awaitable[T]]:
    """Wraps `fetch` so it waits for connectivity instead of failing offline."""

    async def fetcher() -> T:
        if not connectivity.is_online:
            logger.debug("Offline; waiting for connectivity before fetching")
            await connectivity.wait_for_online()
        return await fetch()

    return fetcher
