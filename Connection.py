# Connection.py
# Client side of the live channel: one websocket per manager, reconnect with
# exponential backoff, latest-message delivery.

import json
import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import websockets

import Config
from Errors import ChannelError

logger = logging.getLogger(__name__)

EXHAUSTED_MESSAGE = "Maximum reconnection attempts reached. Restart the client."
MALFORMED_MESSAGE = "Error processing data from server"


class Status(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ReconnectState:
    attempt: int = 0
    status: Status = Status.DISCONNECTED


def on_connecting(state: ReconnectState) -> ReconnectState:
    return replace(state, status=Status.CONNECTING)


def on_open(state: ReconnectState) -> ReconnectState:
    return ReconnectState(attempt=0, status=Status.CONNECTED)


def on_close(
    state: ReconnectState,
    max_retries: int = Config.MAX_RETRIES,
    base_delay_s: float = Config.BASE_DELAY_S,
) -> Tuple[ReconnectState, Optional[float]]:
    """Next state after an unsolicited close, plus the delay before retrying.

    The delay is None once retries are used up; the state is then EXHAUSTED
    and stays there.
    """
    if state.status == Status.EXHAUSTED:
        return state, None
    if state.attempt < max_retries:
        delay = base_delay_s * (2 ** state.attempt)
        return ReconnectState(attempt=state.attempt + 1, status=Status.DISCONNECTED), delay
    return replace(state, status=Status.EXHAUSTED), None


MessageHandler = Callable[[Any], None]
ErrorHandler = Callable[[ChannelError], None]


class ConnectionManager:
    """Keeps a single live channel open and survives transient disconnects.

    Only the latest inbound message is held. Subscribers are invoked for each
    message as it arrives but nothing is queued for them, so a slow consumer
    reading last_message may skip intermediate snapshots.
    """

    def __init__(
        self,
        url: str = Config.WS_URL,
        max_retries: int = Config.MAX_RETRIES,
        base_delay_s: float = Config.BASE_DELAY_S,
        connector: Optional[Callable[[str], Awaitable[Any]]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url
        self.max_retries = max_retries
        self.base_delay_s = base_delay_s
        self.connector = connector or websockets.connect
        self._sleep = sleep

        self.state = ReconnectState()
        self.last_message: Any = None
        self.error: Optional[str] = None

        self._message_handlers: List[MessageHandler] = []
        self._error_handlers: List[ErrorHandler] = []
        self._ws = None
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        self._done: Optional[asyncio.Event] = None

    @property
    def is_connected(self) -> bool:
        return self.state.status == Status.CONNECTED

    def subscribe(self, on_message: MessageHandler, on_error: Optional[ErrorHandler] = None) -> None:
        self._message_handlers.append(on_message)
        if on_error is not None:
            self._error_handlers.append(on_error)

    # ----------------------------
    # LIFECYCLE
    # ----------------------------
    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stopped = False
        self.state = ReconnectState()
        self.error = None
        self._done = asyncio.Event()
        self._task = asyncio.create_task(self._session())

    async def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        self.state = replace(self.state, status=Status.DISCONNECTED)
        self._done_event().set()

    async def wait(self) -> None:
        """Block until the manager is stopped or has exhausted its retries."""
        await self._done_event().wait()

    def _done_event(self) -> asyncio.Event:
        # created on the running loop, never in __init__
        if self._done is None:
            self._done = asyncio.Event()
        return self._done

    # ----------------------------
    # INTERNALS
    # ----------------------------
    async def _session(self) -> None:
        self.state = on_connecting(self.state)
        try:
            ws = await self.connector(self.url)
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
            logger.warning("Connecting to %s failed: %s", self.url, e)
            self._handle_close()
            return

        self._ws = ws
        self.state = on_open(self.state)
        self.error = None
        logger.info("Channel connected to %s", self.url)

        try:
            async for raw in ws:
                self._handle_message(raw)
        except websockets.ConnectionClosed as e:
            logger.warning("Channel closed: %s", e)
        except OSError as e:
            logger.warning("Channel transport failed: %s", e)
        finally:
            self._ws = None

        if not self._stopped:
            self._handle_close()

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        if not self._stopped:
            await self._session()

    def _handle_close(self) -> None:
        self.state, delay = on_close(self.state, self.max_retries, self.base_delay_s)

        if delay is None:
            self.error = EXHAUSTED_MESSAGE
            logger.error(EXHAUSTED_MESSAGE)
            self._emit_error(ChannelError(EXHAUSTED_MESSAGE))
            self._done_event().set()
            return

        logger.info(
            "Attempting to reconnect in %.1fs (attempt %d/%d)",
            delay, self.state.attempt, self.max_retries,
        )
        self._task = asyncio.create_task(self._reconnect_after(delay))

    def _handle_message(self, raw) -> None:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error("Error processing channel message: %s", e)
            self.error = MALFORMED_MESSAGE
            self._emit_error(ChannelError(MALFORMED_MESSAGE))
            return

        self.last_message = data
        for handler in list(self._message_handlers):
            try:
                handler(data)
            except ChannelError as e:
                self.error = str(e)
                self._emit_error(e)
            except Exception:
                logger.exception("Error in message handler")

    def _emit_error(self, err: ChannelError) -> None:
        for handler in list(self._error_handlers):
            try:
                handler(err)
            except Exception:
                logger.exception("Error in error handler")
