"""Command bus announcing assistant actions to the realtime frontend."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from gaka_backend.config import Settings
from gaka_backend.schemas.voice import ToolAction

logger = logging.getLogger(__name__)


class NotificationFailure(Exception):
    """A command could not be delivered to Supabase."""

    def __init__(self, action: ToolAction, target: str, detail: str):
        super().__init__(f"{action.value} -> {target!r}: {detail}")
        self.action = action
        self.target = target
        self.detail = detail


class SupabaseCommandBus:
    """
    Publishes (action, target) pairs by inserting rows into a Supabase table.

    Delivery is at most once and best effort: `notify()` returns immediately,
    the POST runs as a background task, and failures are logged and dropped.
    Frontends subscribe to the table through Supabase Realtime.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self._enabled = settings.notifications_enabled
        self._endpoint: Optional[str] = None
        self._key: Optional[str] = None
        if self._enabled:
            base_url = str(settings.supabase_url).rstrip("/")
            self._endpoint = f"{base_url}/rest/v1/{settings.supabase_events_table}"
            self._key = settings.supabase_key.get_secret_value()  # type: ignore[union-attr]
        else:
            logger.warning(
                "Supabase URL or key not configured. Command notifications are disabled."
            )

        self._client = client
        self._owns_client = client is None
        self._timeout = settings.notification_timeout
        self._pending: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def notify(self, action: ToolAction, target: str) -> Optional[asyncio.Task]:
        """Schedule delivery of one command and return without waiting."""
        logger.info(f"Broadcasting: {action.value} -> {target}")
        if not self._enabled:
            return None

        task = asyncio.create_task(self._deliver(action, target))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, action: ToolAction, target: str) -> bool:
        try:
            await self._post(action, target)
        except NotificationFailure as exc:
            logger.warning(f"Failed to broadcast to Supabase: {exc}")
            return False
        return True

    async def _post(self, action: ToolAction, target: str) -> None:
        headers = {
            "apikey": self._key or "",
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }
        payload = {"action": action.value, "target": target}

        try:
            response = await self._get_http_client().post(
                self._endpoint or "",
                headers=headers,
                json=payload,
            )
        except httpx.HTTPError as exc:
            raise NotificationFailure(action, target, str(exc) or type(exc).__name__) from exc

        if response.status_code >= 400:
            raise NotificationFailure(
                action, target, f"HTTP {response.status_code}: {response.text[:200]}"
            )

    async def aclose(self, timeout: float = 5.0) -> None:
        """Give pending deliveries a moment to finish, then close the client."""
        pending = list(self._pending)
        if pending:
            _, not_done = await asyncio.wait(pending, timeout=timeout)
            for task in not_done:
                task.cancel()
            if not_done:
                logger.warning(f"Dropped {len(not_done)} pending command notification(s)")
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


__all__ = ["NotificationFailure", "SupabaseCommandBus", "ToolAction"]
