# mines/consumers.py
from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from .engine import get_engine
from .events import ADMINS_GROUP, PLAYERS_GROUP, RoundMineLayout

logger = logging.getLogger(__name__)


class MinesConsumer(AsyncJsonWebsocketConsumer):
    """
    Read-only push channel: round transitions and session events for every
    player, plus the round's mine layout for staff connections.
    """

    # ===============================
    # CONNECTION
    # ===============================

    async def connect(self):
        user = self.scope.get("user")
        if user is None or user.is_anonymous:
            await self.close()
            return

        self.user = user
        self.is_admin = bool(user.is_staff)
        self.groups_joined = [PLAYERS_GROUP] + ([ADMINS_GROUP] if self.is_admin else [])

        for group in self.groups_joined:
            await self.channel_layer.group_add(group, self.channel_name)
        await self.accept()

        messages = await self.initial_messages()
        if not messages:
            await self.send_json({"event": "connected", "data": {}})
        for message in messages:
            await self.send_json(message)

    async def disconnect(self, close_code):
        for group in getattr(self, "groups_joined", []):
            await self.channel_layer.group_discard(group, self.channel_name)

    @database_sync_to_async
    def initial_messages(self) -> list:
        scheduler = get_engine().scheduler
        current = scheduler.current
        if current is None:
            return []

        messages = [scheduler.round_update(current).message()]
        if self.is_admin:
            messages.append(
                RoundMineLayout(round_id=current.round_id, positions=list(current.mine_positions)).message()
            )
        return messages

    # ===============================
    # MESSAGE ROUTER
    # ===============================

    async def receive_json(self, content, **kwargs):
        if content.get("type") == "ping":
            await self.send_json({"type": "pong"})
            return
        await self.send_json({
            "type": "error",
            "code": "invalid_message_type",
            "message": "Game actions go through the HTTP API",
        })

    # ===============================
    # GROUP HANDLERS
    # ===============================

    async def mines_event(self, event):
        await self.send_json({"event": event["event"], "data": event["data"]})
