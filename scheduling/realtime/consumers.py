import json

from channels.generic.websocket import AsyncWebsocketConsumer

from scheduling.services.notifications import user_group


class NotificationConsumer(AsyncWebsocketConsumer):
    """Per-user push channel for booking notifications."""

    async def connect(self):
        user = self.scope.get("user")
        if not user or not user.is_authenticated:
            await self.close(code=4001)
            return
        self.group_name = user_group(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def notification_push(self, event):
        # event: {"type": "notification.push", "kind": ..., "title": ..., "bookingId": ...}
        await self.send(json.dumps(event))
