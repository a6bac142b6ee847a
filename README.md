# twitchong

A small Twitch chat bot. It connects to Twitch EventSub over a WebSocket,
subscribes to chat messages in one channel and answers questions through the
Helix chat API. A small Flask app takes part in the implicit OAuth sign-in
and places the access token it receives on a queue.

## What the bot does

- Answers questions: a chat message that starts with `@WayongBotJr ` has the
  rest of its text sent as a prompt to a local text-generation service
  (`http://localhost:11434/api/generate`, model `gemma3:1b`), asking for an
  answer of at most 50 words in Ukrainian. The answer is posted back to chat.
- Logs every chat message it receives, with channel, user and text.
- Reconnects on its own, 3 seconds after the WebSocket connection drops,
  until `stop()` is called.

`EventSubClient.handle_message` keeps one chat handler: each call replaces the
one before. `new_twitch_chat` registers a greeting handler (answering
`HeyGuys` with `VoHiYo`) and then the question handler, so only the question
handler is active.

## Configuration

`twitchong.config.load()` returns a `Config`. It reads a `.env` file in the
working directory when there is one (a warning is logged when there is not);
variables already in the environment win over the file. Anything left unset
takes the default shown.

| Variable                 | `Config` field           | Default       |
|--------------------------|--------------------------|---------------|
| `SERVER_PORT`            | `server_port`            | `8080`        |
| `LOG_LEVEL`              | `log_level`              | `info`        |
| `APP_ENV`                | `environment`            | `development` |
| `BOT_USER_ID`            | `bot_user_id`            | `undefined`   |
| `OAUTH_TOKEN`            | `oauth_token`            | `undefined`   |
| `CLIENT_ID`              | `client_id`              | `undefined`   |
| `CLIENT_SECRET`          | `client_secret`          | `undefined`   |
| `CHAT_CHANNEL_USER_ID`   | `chat_channel_user_id`   | `undefined`   |
| `EVENTSUB_WEBSOCKET_URL` | `eventsub_websocket_url` | `undefined`   |
| `TWITCH_SECRET_STATE`    | `twitch_secret_state`    | `undefined`   |

A `.env` file might look like this:

```
SERVER_PORT=8080
BOT_USER_ID=100000001
CHAT_CHANNEL_USER_ID=100000002
CLIENT_ID=your-client-id
CLIENT_SECRET=secret
OAUTH_TOKEN=token
TWITCH_SECRET_STATE=secret
EVENTSUB_WEBSOCKET_URL=ws://localhost:8081/ws
```

A `SERVER_PORT` that is not a whole number makes `load()` raise `ValueError`.
`log_level` is read but does not change what is logged: the logger always
writes from debug level up.

## Running the bot

```python
from twitchong.config import load
from twitchong.chat import new_twitch_chat, start_twitch_chat

config = load()
client = new_twitch_chat(config)
start_twitch_chat(client)
```

`new_twitch_chat` returns an `EventSubClient` with the welcome, chat and
default handlers registered. When the welcome message arrives the client
records its session id and subscribes to `channel.chat.message` for the
configured channel with `register_eventsub_listener`. `start_twitch_chat`
logs a failed connection instead of raising; `client.start()` on its own
raises `EventSubError`. The reader runs in a background thread, so the
calling program has to keep running. Call `client.stop()` to close the
connection and stop reconnecting.

The pieces can also be used directly:

- `twitchong.chat.send_chat_message(config, message)` posts a message as the
  bot user and raises `RequestError` unless Twitch answers `200`.
- `twitchong.chat.ask_model(prompt)` returns the text the generation service
  answers.

## The sign-in web app

```python
from twitchong.config import load
from twitchong.server import create_app, start

config = load()
app = create_app(config)
start(app, config)
```

`start` serves on all interfaces at `server_port` and logs a failure to start.
The app serves:

- `GET /` — records `TWITCH_SECRET_STATE` as a valid OAuth state and answers
  with JSON `{"client_id": ..., "state": ...}`.
- `GET /twitch/callback` — where Twitch redirects after sign-in. Without an
  `error` parameter it answers `204`. With one, an unknown `state` is answered
  `400` with `{"error": "Invalid state parameter"}`; a known state is consumed
  and the error is answered `400` as JSON with `error`, `error_description`
  and `state`.
- `POST /process-tokens` — takes the tokens as JSON or form data. Bad data is
  answered `400` with `{"error": "Invalid token data"}`, an unknown state with
  `{"error": "Invalid state parameter"}`. Otherwise the state is consumed, the
  access token is put on the queue `twitchong.handlers.OAUTH_TOKENS`, and the
  answer is `{"status": "success", ...}` with an `HX-Redirect: /` header.
- `/index.js` and `/index.min.css` — files `assets/js/index.js` and
  `assets/js/index.min.css` under the working directory, or `404`.

`OAUTH_TOKENS` holds one token; a second token waits until the first has been
taken. Every request is logged with its method, path and duration.

## What the package does not do

- The web app has no HTML pages: `/` answers with the client id and state as
  JSON rather than a sign-in page, and the callback does not serve a page that
  reads the tokens from the URL fragment. A front end has to do both.
- Nothing takes tokens from `OAUTH_TOKENS` on its own; the bot uses
  `OAUTH_TOKEN` from the configuration.
- There is no command-line entry point; bot and web app are started from
  Python as shown above.

## Building blocks

- `twitchong.eventsub.EventSubClient` — a WebSocket client that routes each
  message by `metadata.message_type`: a handler registered with `handle` (or
  `handle_message`, which takes the `notification` type) first; before a
  session is known, the welcome handler from `handle_welcome`; otherwise the
  handler from `handle_default`. `dispatch` routes one decoded message and
  `is_connected` tells whether a connection is open.
- `twitchong.httpclient.send_request` and `send_request_and_parse` — JSON
  HTTP requests described by a `RequestConfig`; `send_request_and_parse`
  returns the decoded body and raises `RequestError` for a status of 400 or
  above or a body that is not JSON.
- `twitchong.logger.get_logger`, `with_fields`, `object_field` and
  `pretty_object` — coloured console logging to standard output with
  structured fields, formatted by `ColorFormatter`.
- `twitchong.response.respond_json` and `respond_error` — JSON responses for
  the web app; a payload that cannot be encoded gives a `500` answer.
- `twitchong.middleware.install_request_logging(app)` — request logging for
  any Flask app.