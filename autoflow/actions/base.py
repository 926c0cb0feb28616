"""Action handler interface and dispatcher."""

from __future__ import annotations

import abc
import logging
from typing import Any, Dict, Mapping, Optional

from ..errors import DispatchError
from .templates import render_config

logger = logging.getLogger(__name__)


class ActionHandler(metaclass=abc.ABCMeta):
    """One kind of side effect a step or task can perform."""

    #: Configuration keys the handler cannot run without.
    required_keys: tuple[str, ...] = ()

    def validate(self, config: Mapping[str, Any]) -> list[str]:
        """Return the missing required keys of ``config``."""
        return [key for key in self.required_keys if key not in config]

    @abc.abstractmethod
    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> Optional[Any]:
        """Perform the side effect and return a result.

        Step actions return a mapping (merged into the workflow context) or
        ``None``. Raising any exception marks the step or firing failed.
        """
        raise NotImplementedError


class ActionDispatcher:
    """Registry mapping an action kind to its handler."""

    def __init__(self, handlers: Optional[Dict[str, ActionHandler]] = None) -> None:
        self._handlers: Dict[str, ActionHandler] = dict(handlers or {})

    def register(self, kind: str, handler: ActionHandler) -> None:
        """Register ``handler`` for ``kind``, replacing any previous one."""
        self._handlers[kind] = handler

    def has(self, kind: str) -> bool:
        return kind in self._handlers

    def get(self, kind: str) -> ActionHandler:
        try:
            return self._handlers[kind]
        except KeyError:
            raise DispatchError(f"No handler registered for action {kind!r}") from None

    @property
    def kinds(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(
        self, kind: str, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> Optional[Any]:
        """Render ``config`` against ``context`` and run the handler for ``kind``."""
        handler = self.get(kind)
        rendered = render_config(dict(config), context)
        logger.debug(f"Dispatching action {kind}")
        return await handler.execute(rendered, dict(context))
