"""EventSub WebSocket client that routes incoming messages to handlers."""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Optional

import websocket

from twitchong.config import Config
from twitchong.httpclient import RequestConfig, RequestError, send_request
from twitchong.logger import with_fields

_SUBSCRIPTIONS_URL = "https://api.twitch.tv/helix/eventsub/subscriptions"
_CHAT_MESSAGE = "channel.chat.message"
_CONNECT_ERRORS = (websocket.WebSocketException, OSError, ValueError)

Handler = Callable[[dict], Any]
TextHandler = Callable[[str], Any]

_log = with_fields(component="websocket")


def _error(msg: str, **fields: Any) -> None:
    _log.error(msg, extra={"fields": fields})


class EventSubError(Exception):
    """Raised when connecting or subscribing to EventSub fails."""


def register_eventsub_listener(config: Config, session_id: str) -> str:
    """Subscribe the session to channel chat messages and return the subscription id."""
    body = {
        "type": _CHAT_MESSAGE,
        "version": "1",
        "condition": {
            "broadcaster_user_id": config.chat_channel_user_id,
            "user_id": config.bot_user_id,
        },
        "transport": {
            "method": "websocket",
            "session_id": session_id,
        },
    }
    _log.debug("subscribing to EventSub", extra={"fields": {"requestBody": body}})
    request = RequestConfig(
        method="POST",
        url=_SUBSCRIPTIONS_URL,
        headers={
            "Authorization": f"Bearer {config.oauth_token}",
            "Client-Id": config.client_id,
            "Content-Type": "application/json",
        },
        body=body,
    )
    try:
        with send_request(request) as resp:
            status = resp.status_code
            text = resp.text
    except RequestError as err:
        _error("error sending request", error=str(err))
        raise EventSubError(str(err)) from err

    if status != 202:
        _error(f"failed to subscribe to {_CHAT_MESSAGE}", status=status, response=text)
        raise EventSubError(f"failed to subscribe to {_CHAT_MESSAGE}: status code {status}")

    try:
        data = json.loads(text)
    except ValueError as err:
        _error("error parsing response JSON", error=str(err))
        raise EventSubError(f"error parsing response JSON: {err}") from err

    items = data.get("data") if isinstance(data, dict) else None
    if not isinstance(items, list) or not items:
        _error("unexpected response format")
        raise EventSubError("unexpected response format")

    first = items[0]
    if not isinstance(first, dict):
        _error("unexpected data item format")
        raise EventSubError("unexpected data item format")

    subscription_id = first.get("id")
    if not isinstance(subscription_id, str):
        _error("could not find subscription ID")
        raise EventSubError("could not find subscription ID")
    return subscription_id


class EventSubClient:
    """A reconnecting WebSocket client for Twitch EventSub.

    Each message is routed by its metadata.message_type: a handler registered
    for that type runs first; otherwise, before a session is known, the welcome
    handler; otherwise the default handler.
    """

    def __init__(
        self,
        config: Config,
        *,
        reconnect_delay: float = 5.0,
        auto_reconnect: bool = True,
        on_connect: Optional[Callable[[], Any]] = None,
        on_disconnect: Optional[Callable[[Optional[BaseException]], Any]] = None,
    ) -> None:
        self.config = config
        self.reconnect_delay = reconnect_delay
        self.auto_reconnect = auto_reconnect
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect
        self._handlers: dict[str, Handler] = {}
        self._default_handler: Optional[Handler] = None
        self._welcome_handler: Optional[Handler] = None
        self._session_id = ""
        self._conn: Any = None
        self._connected = False
        self._lock = threading.RLock()
        self._stopped = threading.Event()

    def handle(self, message_type: str, handler: Handler) -> None:
        """Register handler for messages of the given type, replacing any earlier one."""
        with self._lock:
            self._handlers[message_type] = handler

    def handle_message(self, handler: TextHandler) -> None:
        """Call handler with the text of every chat message notification.

        This occupies the "notification" type, so a later call replaces an earlier one.
        """

        def on_notification(data: dict) -> None:
            metadata = data.get("metadata")
            if not isinstance(metadata, dict):
                _error("metadata is not a map")
                return
            subscription_type = metadata.get("subscription_type")
            if not isinstance(subscription_type, str):
                _error("subscription_type is not a string")
                return
            if subscription_type != _CHAT_MESSAGE:
                return

            payload = data.get("payload")
            if not isinstance(payload, dict):
                _error("payload is not a map")
                return
            event = payload.get("event")
            if not isinstance(event, dict):
                _error("event is not a map")
                return
            channel = event.get("broadcaster_user_login")
            user = event.get("chatter_user_login")
            message = event.get("message")
            if not isinstance(message, dict):
                _error("message is not a map")
                return
            text = message.get("text")
            if not isinstance(text, str):
                _error("text is not a string")
                return

            _log.info(
                "chat message received",
                extra={
                    "fields": {
                        "channel": channel if isinstance(channel, str) else "",
                        "user": user if isinstance(user, str) else "",
                        "message": text,
                    }
                },
            )
            handler(text)

        self.handle("notification", on_notification)

    def handle_welcome(self) -> None:
        """Record the session id of the welcome message and subscribe to chat messages."""

        def on_welcome(data: dict) -> None:
            payload = data.get("payload")
            if not isinstance(payload, dict):
                _error("payload is not a map")
                return
            _log.debug("welcome received", extra={"fields": {"payload": payload}})
            session = payload.get("session")
            if not isinstance(session, dict):
                _error("session is not a map")
                return
            session_id = session.get("id")
            if not isinstance(session_id, str):
                _error("session ID is not a string")
                return

            with self._lock:
                self._session_id = session_id
            try:
                register_eventsub_listener(self.config, session_id)
            except EventSubError as err:
                _error("failed to register EventSub listener", error=str(err))

        with self._lock:
            self._welcome_handler = on_welcome

    def handle_default(self, handler: Handler) -> None:
        """Set the handler for messages that no other handler takes."""
        with self._lock:
            self._default_handler = handler

    def start(self) -> None:
        """Connect and start reading messages in the background.

        Raises EventSubError if the connection cannot be made.
        """
        self._stopped.clear()
        try:
            conn = self._connect()
        except _CONNECT_ERRORS as err:
            raise EventSubError(f"failed to connect: {err}") from err
        self._start_reader(conn)

    def stop(self) -> None:
        """Close the connection and stop reconnecting."""
        self._stopped.set()
        with self._lock:
            conn = self._conn
        if conn is not None:
            conn.close()

    def is_connected(self) -> bool:
        """Whether a connection is currently open."""
        with self._lock:
            return self._connected

    def dispatch(self, data: Any) -> None:
        """Route one decoded message to the handler that takes it."""
        if not isinstance(data, dict):
            _error("data is not a map")
            return
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            _error("metadata is not a map")
            return
        message_type = metadata.get("message_type")
        if not isinstance(message_type, str):
            _error("message_type is not a string")
            return

        with self._lock:
            handler = self._handlers.get(message_type)
            welcome = self._welcome_handler if not self._session_id else None
            default = self._default_handler

        chosen = handler or welcome or default
        if chosen is None:
            _log.info(f"No handler found for message type: {message_type}")
            return
        try:
            chosen(data)
        except Exception as err:  # a failing handler must not stop the reader
            _error(f"Error handling message of type {message_type}: {err}")

    def _connect(self) -> Any:
        conn = websocket.create_connection(self.config.eventsub_websocket_url)
        with self._lock:
            self._conn = conn
            self._connected = True
        if self._on_connect is not None:
            self._on_connect()
        return conn

    def _start_reader(self, conn: Any) -> None:
        threading.Thread(
            target=self._read_loop, args=(conn,), name="eventsub-reader", daemon=True
        ).start()

    def _read_loop(self, conn: Any) -> None:
        try:
            while True:
                try:
                    message = conn.recv()
                except websocket.WebSocketConnectionClosedException:
                    break
                except (websocket.WebSocketException, OSError) as err:
                    if not self._stopped.is_set():
                        _log.info(f"read error: {err}")
                    break
                if not message and not conn.connected:
                    break
                try:
                    data = json.loads(message)
                except ValueError as err:
                    _error("error parsing message", error=str(err))
                    continue
                threading.Thread(target=self.dispatch, args=(data,), daemon=True).start()
        finally:
            with self._lock:
                self._connected = False
                conn.close()
            if self._on_disconnect is not None:
                self._on_disconnect(None)
            if self.auto_reconnect and not self._stopped.is_set():
                threading.Thread(
                    target=self._reconnect, name="eventsub-reconnect", daemon=True
                ).start()

    def _reconnect(self) -> None:
        with self._lock:
            self._connected = False
        url = self.config.eventsub_websocket_url
        while not self._stopped.is_set():
            _log.info(f"Attempting to reconnect to {url} in {self.reconnect_delay}s")
            if self._stopped.wait(self.reconnect_delay):
                return
            try:
                conn = self._connect()
            except _CONNECT_ERRORS as err:
                _log.info(f"Failed to reconnect: {err}")
                continue
            _log.info(f"Successfully reconnected to {url}")
            self._start_reader(conn)
            return