"""
Process lifecycle hooks.

The host application forwards its foreground/background transitions here;
controllers only react to these calls and never talk to an OS API directly.
Keeping a channel alive while backgrounded is delegated to an optional
BackgroundExtender supplied by the host.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Protocol


logger = logging.getLogger("horizon.lifecycle")


class LifecycleHook(Protocol):
    """Receiver of foreground/background transitions."""

    async def on_enter_background(self) -> None: ...

    async def on_enter_foreground(self) -> None: ...


class BackgroundExtender(Protocol):
    """
    Host facility granting extra run time after the app is backgrounded.

    begin() returns an opaque token; on_expire is called when the granted
    time is about to run out.
    """

    def begin(self, name: str, on_expire: Callable[[], None]) -> Any: ...

    def end(self, token: Any) -> None: ...


class BackgroundLease:
    """Tracks at most one outstanding background-time grant."""

    def __init__(self, name: str, extender: Optional[BackgroundExtender] = None):
        self.name = name
        self._extender = extender
        self._token: Any = None

    @property
    def active(self) -> bool:
        return self._token is not None

    def acquire(self) -> None:
        if self._extender is None or self._token is not None:
            return
        self._token = self._extender.begin(self.name, self.release)
        logger.debug(f"Background time requested for {self.name}")

    def release(self) -> None:
        if self._extender is None or self._token is None:
            return
        token = self._token
        self._token = None
        self._extender.end(token)
        logger.debug(f"Background time released for {self.name}")


class LifecycleDispatcher:
    """
    Fans host lifecycle notifications out to every registered hook.

    Usage:
        lifecycle = LifecycleDispatcher()
        lifecycle.register(assist_manager)
        lifecycle.register(tag_manager)

        # from the host's app-state observer
        await lifecycle.enter_foreground()
    """

    def __init__(self):
        self._hooks: List[LifecycleHook] = []

    def register(self, hook: LifecycleHook) -> None:
        if hook not in self._hooks:
            self._hooks.append(hook)

    def unregister(self, hook: LifecycleHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    @property
    def size(self) -> int:
        return len(self._hooks)

    async def enter_background(self) -> None:
        await self._fan_out("on_enter_background")

    async def enter_foreground(self) -> None:
        await self._fan_out("on_enter_foreground")

    async def _fan_out(self, method: str) -> None:
        hooks = list(self._hooks)
        results = await asyncio.gather(
            *(getattr(hook, method)() for hook in hooks),
            return_exceptions=True
        )
        for hook, result in zip(hooks, results):
            if isinstance(result, Exception):
                logger.error(f"{method} failed for {hook!r}: {result}")
