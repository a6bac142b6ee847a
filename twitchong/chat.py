"""Chat bot behaviour: sending chat messages and answering questions."""

from __future__ import annotations

import contextlib
import functools
from typing import Any, Optional

from twitchong.config import Config
from twitchong.eventsub import EventSubClient, EventSubError
from twitchong.httpclient import RequestConfig, RequestError, send_request, send_request_and_parse
from twitchong.logger import with_fields

_CHAT_MESSAGES_URL = "https://api.twitch.tv/helix/chat/messages"
_GENERATE_URL = "http://localhost:11434/api/generate"
_MODEL = "gemma3:1b"
_BOT_MENTION = "@WayongBotJr"
_GREETING = "HeyGuys"
_GREETING_REPLY = "VoHiYo"
_PROMPT_TEMPLATE = (
    'My question to you is: "{question}". Respond to it with maximum 50 words '
    "in Ukrainian language. Do not ask questions. Do not apologize. "
    "Do not quote yourself."
)

_log = with_fields(component="websocket")


def send_chat_message(config: Config, message: str) -> None:
    """Post message to the configured channel as the bot user.

    Raises RequestError if the request fails or the answer is not 200.
    """
    request = RequestConfig(
        method="POST",
        url=_CHAT_MESSAGES_URL,
        headers={
            "Authorization": f"Bearer {config.oauth_token}",
            "Client-Id": config.client_id,
            "Content-Type": "application/json",
        },
        body={
            "broadcaster_id": config.chat_channel_user_id,
            "sender_id": config.bot_user_id,
            "message": message,
        },
    )
    try:
        with send_request(request) as resp:
            status = resp.status_code
            text = resp.text
    except RequestError as err:
        _log.error("error sending request", extra={"fields": {"error": str(err)}})
        raise

    if status != 200:
        _log.error(
            "failed to send chat message",
            extra={"fields": {"status": status, "response": text}},
        )
        raise RequestError(
            f"failed to send chat message: status code {status}", status=status, body=text
        )
    _log.info("chat message sent", extra={"fields": {"message": message}})


def ask_model(prompt: str) -> str:
    """Send the prompt to the local generate endpoint and return the text it answers."""
    result = send_request_and_parse(
        RequestConfig(
            method="POST",
            url=_GENERATE_URL,
            body={
                "model": _MODEL,
                "prompt": _PROMPT_TEMPLATE.format(question=prompt),
                "stream": False,
            },
        )
    )
    if result is None:
        return ""
    if not isinstance(result, dict):
        raise RequestError("error parsing response: expected a JSON object")
    reply = result.get("response", "")
    if reply is None:
        return ""
    if not isinstance(reply, str):
        raise RequestError("error parsing response: response is not a string")
    return reply


def _on_disconnect(err: Optional[BaseException]) -> None:
    if err is not None:
        _log.error("Disconnected with error")
    else:
        _log.info("Disconnected from WebSocket server")


def _note_unhandled(data: dict[str, Any]) -> None:
    """Record the type of a message that no specific handler claimed."""
    metadata = data.get("metadata")
    message_type = metadata.get("message_type") if isinstance(metadata, dict) else None
    _log.debug(
        "unhandled ws message", extra={"fields": {"message_type": str(message_type)}}
    )


def new_twitch_chat(config: Config) -> EventSubClient:
    """Build the chat bot client with its welcome, chat and default handlers."""
    client = EventSubClient(
        config,
        reconnect_delay=3.0,
        on_connect=functools.partial(_log.info, "Connected to WebSocket server!"),
        on_disconnect=_on_disconnect,
    )
    client.handle_welcome()

    def greet(text: str) -> None:
        if _GREETING in text:
            with contextlib.suppress(RequestError):
                send_chat_message(client.config, _GREETING_REPLY)

    def answer(text: str) -> None:
        if not text.startswith(_BOT_MENTION):
            return
        prompt = text.split(f"{_BOT_MENTION} ")[1]
        _log.info("prompt received", extra={"fields": {"prompt": prompt}})
        try:
            reply = ask_model(prompt)
        except RequestError as err:
            _log.error("token validation failed", extra={"fields": {"error": str(err)}})
            return
        _log.info("model replied", extra={"fields": {"response": reply}})
        with contextlib.suppress(RequestError):
            send_chat_message(client.config, reply)

    # Chat handlers share the "notification" slot; the last one registered is active.
    client.handle_message(greet)
    client.handle_message(answer)

    client.handle_default(_note_unhandled)
    return client


def start_twitch_chat(client: EventSubClient) -> None:
    """Start the client, logging rather than raising if the connection fails."""
    try:
        client.start()
    except EventSubError as err:
        _log.error(
            "Failed to establish WebSocket connection", extra={"fields": {"error": str(err)}}
        )