import asyncio
from typing import Final

__all__ = ('SHUTDOWN_EVENT',
           'EventProxy')

# Set by the CLI on interrupt, awaited by watch()
SHUTDOWN_EVENT: Final[asyncio.Event] = asyncio.Event()

class EventProxy:
    '''Wait-only view of a shutdown event, handed to code that must not set or clear it'''
    __slots__ = ('_event',)

    def __init__(self, event: asyncio.Event) -> None:
        self._event: Final[asyncio.Event] = event

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()
