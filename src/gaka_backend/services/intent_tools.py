"""Assistant tools the intent model can call: navigate, search and read."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping

from gaka_backend.schemas.voice import ToolAction, ToolResponse
from gaka_backend.services.command_bus import SupabaseCommandBus

logger = logging.getLogger(__name__)


_TOOL_SPECS: dict[str, dict[str, str]] = {
    "navigate": {
        "description": "Navigate to a specific page or feature in the application",
        "argument": "feature_name",
        "argument_description": "Name of the page or feature, e.g. 'library' or 'contests'",
    },
    "search": {
        "description": "Search for books, users, or content",
        "argument": "query",
        "argument_description": "What to search for",
    },
    "read": {
        "description": "Read or play a book/content",
        "argument": "content_name",
        "argument_description": "Title of the book or content to open",
    },
}


class GakaTools:
    """Executes assistant tools and announces each action on the command bus."""

    def __init__(self, command_bus: SupabaseCommandBus):
        self._command_bus = command_bus
        self._handlers: dict[str, Callable[[str], ToolResponse]] = {
            "navigate": self.navigate,
            "search": self.search,
            "read": self.read,
        }

    def navigate(self, feature_name: str) -> ToolResponse:
        return self._run(ToolAction.NAVIGATE, feature_name, f"Navigating to {feature_name}")

    def search(self, query: str) -> ToolResponse:
        return self._run(ToolAction.SEARCH, query, f"Searching for {query}")

    def read(self, content_name: str) -> ToolResponse:
        return self._run(
            ToolAction.READ, content_name, f"Opening {content_name} for reading"
        )

    def _run(self, action: ToolAction, target: str, tts_text: str) -> ToolResponse:
        logger.info(f"Tool executed: {action.value.lower()} {target}")
        self._command_bus.notify(action, target)
        return ToolResponse(action=action, target=target, tts_text=tts_text)

    @staticmethod
    def definitions() -> list[dict[str, Any]]:
        """Return OpenAI-style function definitions for every tool."""
        return [
            {
                "type": "function",
                "function": {
                    "name": name,
                    "description": spec["description"],
                    "parameters": {
                        "type": "object",
                        "properties": {
                            spec["argument"]: {
                                "type": "string",
                                "description": spec["argument_description"],
                            }
                        },
                        "required": [spec["argument"]],
                    },
                },
            }
            for name, spec in _TOOL_SPECS.items()
        ]

    def dispatch(self, name: str, arguments: str | Mapping[str, Any] | None) -> ToolResponse:
        """
        Execute a tool call by name.

        Raises:
            ValueError: unknown tool, malformed arguments or a missing target
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise ValueError(f"Unknown tool: {name}")

        if isinstance(arguments, str):
            try:
                parsed = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid arguments for {name}: {exc.msg}") from exc
        else:
            parsed = dict(arguments or {})

        if not isinstance(parsed, dict):
            raise ValueError(f"Arguments for {name} must be an object")

        argument = _TOOL_SPECS[name]["argument"]
        value = parsed.get(argument)
        if value is None and len(parsed) == 1:
            # Models occasionally rename the single parameter
            value = next(iter(parsed.values()))
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Missing '{argument}' for {name}")

        return handler(value.strip())


__all__ = ["GakaTools"]
