import json
from channels.generic.websocket import AsyncWebsocketConsumer

from admission.realtime.notify import QUEUE_GROUP


class QueueUpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes queue events to waiting-room screens and staff consoles."""

    async def connect(self):
        await self.channel_layer.group_add(QUEUE_GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(QUEUE_GROUP, self.channel_name)

    async def queue_event(self, event):
        # event: {"type": "queue.event", "event": "allowed.update", "data": ...}
        await self.send(json.dumps({"type": event["event"], "data": event.get("data")}))
