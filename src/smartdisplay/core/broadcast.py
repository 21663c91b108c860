import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

from .state import DisplayState, StateStore, Subscription

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """Anything that can receive a JSON message (a WebSocket, a test fake)"""

    async def send_json(self, data: Any) -> None: ...


DisconnectHook = Callable[[str], Awaitable[Any]]


def state_message(state: DisplayState) -> Dict[str, Any]:
    return {"type": "state", "data": state.to_dict()}


class BroadcastFanout:
    """Pushes every committed state snapshot to all connected subscribers"""

    def __init__(self, store: StateStore, on_disconnect: Optional[DisconnectHook] = None):
        self.store = store
        self.on_disconnect = on_disconnect
        self.active_connections: Dict[str, Subscriber] = {}
        self._outbox: "asyncio.Queue[Tuple[Optional[str], Dict[str, Any]]]" = asyncio.Queue()
        self._pending: Dict[str, Tuple[Subscriber, asyncio.Future]] = {}
        self._sender_task: Optional[asyncio.Task] = None
        self._running = False
        self._subscription: Optional[Subscription] = None

    @property
    def connection_count(self) -> int:
        return len(self.active_connections)

    def is_display(self, subscriber_id: str) -> bool:
        return self.store.is_display_subscriber(subscriber_id)

    def _on_state_change(self, state: DisplayState) -> None:
        # Snapshots are queued in commit order and sent by a single task
        self._outbox.put_nowait((None, state_message(state)))

    async def connect(self, subscriber: Subscriber, subscriber_id: Optional[str] = None) -> str:
        """Register a subscriber and send it the current state.

        While the sender task runs, the initial snapshot is queued behind any
        snapshots still waiting in the outbox and the subscriber only joins the
        broadcast once it has been delivered, so it never sees an older state
        after a newer one.
        """
        subscriber_id = subscriber_id or uuid.uuid4().hex[:8]
        message = state_message(self.store.get())
        if not self._running:
            await self._deliver_initial(subscriber_id, subscriber, message)
            return subscriber_id

        delivered = asyncio.get_running_loop().create_future()
        self._pending[subscriber_id] = (subscriber, delivered)
        self._outbox.put_nowait((subscriber_id, message))
        try:
            await delivered
        finally:
            self._pending.pop(subscriber_id, None)
        return subscriber_id

    async def _deliver_initial(
        self, subscriber_id: str, subscriber: Subscriber, message: Dict[str, Any]
    ) -> None:
        try:
            await subscriber.send_json(message)
        except Exception as e:
            logger.error(f"Failed to send initial state to {subscriber_id}: {e}")
            raise
        self.active_connections[subscriber_id] = subscriber
        logger.info(
            f"Subscriber {subscriber_id} connected. Active connections: {self.connection_count}"
        )

    async def disconnect(self, subscriber_id: str) -> None:
        """Forget a subscriber"""
        if self.active_connections.pop(subscriber_id, None) is None:
            return
        logger.info(
            f"Subscriber {subscriber_id} disconnected. Active connections: {self.connection_count}"
        )
        if self.on_disconnect is not None:
            try:
                await self.on_disconnect(subscriber_id)
            except Exception as e:
                logger.error(f"Disconnect hook failed for {subscriber_id}: {e}")

    async def send_to(self, subscriber_id: str, message: Dict[str, Any]) -> None:
        """Send a message to one subscriber only"""
        subscriber = self.active_connections.get(subscriber_id)
        if subscriber is None:
            return
        try:
            await subscriber.send_json(message)
        except Exception as e:
            logger.error(f"Failed to send message to {subscriber_id}: {e}")
            await self.disconnect(subscriber_id)

    async def broadcast_message(self, message: Dict[str, Any]) -> None:
        """Send a JSON message to every subscriber"""
        if not self.active_connections:
            return

        dead_connections = []
        for subscriber_id, subscriber in list(self.active_connections.items()):
            try:
                await subscriber.send_json(message)
            except Exception as e:
                logger.error(f"Failed to send message to {subscriber_id}: {e}")
                dead_connections.append(subscriber_id)

        for subscriber_id in dead_connections:
            await self.disconnect(subscriber_id)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._subscription = self.store.on_change(self._on_state_change)
        self._sender_task = asyncio.create_task(self._sender_loop())
        logger.info("Broadcast fanout started")

    async def stop(self) -> None:
        self._running = False
        if self._sender_task:
            self._sender_task.cancel()
            try:
                await self._sender_task
            except asyncio.CancelledError:
                pass
            self._sender_task = None
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()
        for _, delivered in self._pending.values():
            if not delivered.done():
                delivered.cancel()
        self._pending.clear()
        self.active_connections.clear()
        logger.info("Broadcast fanout stopped")

    async def join(self) -> None:
        """Wait until every queued snapshot has been sent"""
        await self._outbox.join()

    async def _sender_loop(self) -> None:
        while self._running:
            target, message = await self._outbox.get()
            try:
                if target is None:
                    await self.broadcast_message(message)
                else:
                    await self._send_pending(target, message)
            except Exception as e:
                logger.error(f"Broadcast error: {e}")
            finally:
                self._outbox.task_done()

    async def _send_pending(self, subscriber_id: str, message: Dict[str, Any]) -> None:
        entry = self._pending.get(subscriber_id)
        if entry is None:
            return
        subscriber, delivered = entry
        try:
            await self._deliver_initial(subscriber_id, subscriber, message)
        except Exception as e:
            if not delivered.done():
                delivered.set_exception(e)
            return
        if not delivered.done():
            delivered.set_result(None)
