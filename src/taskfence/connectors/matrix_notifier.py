# src/taskfence/connectors/matrix_notifier.py

"""
Matrix notification sink.

Reminders are posted as m.notice messages into one room. The dedupe tag and the
task/location ids ride along as custom content keys so clients/bots can collapse them.

"Permission" here means: the client could log in (or restore its session) and the
target room is joined. Sending happens on the background loop; notify() only schedules
it and never waits for the homeserver.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from typing import Any

from nio import AsyncClient, JoinError, RoomSendError

from ..geofence.notifications import BaseNotifier, PermissionResult
from .background_loop import BackgroundLoopRunner
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)


class MatrixNotifier(BaseNotifier):
    name = "matrix"

    def __init__(self, settings, runner: BackgroundLoopRunner | None) -> None:
        super().__init__()
        self._settings = settings
        self._runner = runner
        self._client: AsyncClient | None = None
        self.room_id: str | None = None

    def is_supported(self) -> bool:
        configured = bool(
            (getattr(self._settings, "matrix_homeserver", "") or "").strip()
            and (getattr(self._settings, "matrix_user_id", "") or "").strip()
        )
        return configured and self._runner is not None

    async def _request(self) -> PermissionResult:
        assert self._runner is not None
        return await asyncio.wrap_future(self._runner.submit(self._connect()))

    async def _connect(self) -> PermissionResult:
        client = await create_matrix_client(self._settings)
        if client is None:
            return PermissionResult.DENIED

        await client.sync(timeout=10000, full_state=True)

        room_id = (getattr(self._settings, "matrix_notify_room", "") or "").strip()
        if not room_id and client.rooms:
            room_id = next(iter(client.rooms.keys()))
        if not room_id:
            logger.error("Matrix: no notify room configured and the account has no joined rooms")
            await client.close()
            return PermissionResult.DENIED

        if room_id not in client.rooms:
            resp = await client.join(room_id)
            if isinstance(resp, JoinError):
                logger.error("Matrix: failed to join %s: %s", room_id, resp.message)
                await client.close()
                return PermissionResult.DENIED
            room_id = resp.room_id

        self._client = client
        self.room_id = room_id
        logger.info("Matrix notifier ready (room=%s)", room_id)
        return PermissionResult.GRANTED

    def _deliver(self, title: str, body: str, tag: str, metadata: dict[str, Any]) -> None:
        if self._client is None or self.room_id is None or self._runner is None:
            raise RuntimeError("Matrix notifier is not connected")

        fut = self._runner.submit(self._send(title, body, tag, metadata))
        fut.add_done_callback(lambda f: self._log_send_result(f, tag))

    async def _send(self, title: str, body: str, tag: str, metadata: dict[str, Any]) -> None:
        assert self._client is not None and self.room_id is not None
        content = {
            "msgtype": "m.notice",
            "body": f"{title}\n{body}",
            "taskfence.tag": tag,
            "taskfence.meta": metadata,
        }
        resp = await self._client.room_send(
            room_id=self.room_id,
            message_type="m.room.message",
            content=content,
            ignore_unverified_devices=True,
        )
        if isinstance(resp, RoomSendError):
            raise RuntimeError(f"room_send failed: {resp.message}")

    @staticmethod
    def _log_send_result(fut: concurrent.futures.Future[None], tag: str) -> None:
        if fut.cancelled():
            logger.warning("Matrix notification %s cancelled", tag)
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("Matrix notification %s failed: %r", tag, exc)
        else:
            logger.debug("Matrix notification %s sent", tag)

    def close(self) -> None:
        client, self._client = self._client, None
        if client is None or self._runner is None:
            return
        try:
            self._runner.run(client.close(), timeout=10.0)
        except Exception:
            logger.debug("Matrix client close failed.", exc_info=True)
