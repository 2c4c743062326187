"""Client constants: defaults, wire event names and CLI text."""

from prompt_toolkit.styles import Style

CHUNK_SIZE_BYTES: int = 1_000_000

DEFAULT_CONFIG_FILE = ".pastaconfig"
DEFAULT_HOST = "localhost:4000"
DEFAULT_SCHEME = "http"

STREAM_TOPIC_PREFIX = "streams:"

# Phoenix channel framing
PROTOCOL_VSN = "1.0.0"
PHOENIX_TOPIC = "phoenix"
PHX_JOIN = "phx_join"
PHX_REPLY = "phx_reply"
PHX_ERROR = "phx_error"
PHX_CLOSE = "phx_close"
PHX_LEAVE = "phx_leave"
HEARTBEAT = "heartbeat"
SYSTEM_EVENTS = frozenset({PHX_JOIN, PHX_REPLY, PHX_ERROR, PHX_CLOSE, PHX_LEAVE, HEARTBEAT})

HEARTBEAT_INTERVAL_SECONDS = 30
JOIN_TIMEOUT_SECONDS = 10

# Streaming events
PRODUCER_JOIN = "producer_join"
CONSUMER_JOIN = "consumer_join"
BYTES_REQUESTED = "bytes_requested"
BYTES = "bytes"
DONE = "done"
REQUEST_BYTES = "request_bytes"
NO_MORE_DATA = "no_more_data"

WRITE_QUEUE_DEPTH = 4

DESCRIPTION = "Copies your pastas"

STYLE = Style.from_dict(
    {
        "prompt": "#F45935 bold",
    }
)

TOKEN_PROMPT_TEXT = "token> "

LOGIN_INSTRUCTIONS = """You are not logged in. Please visit this URL in a browser:
{login_url}

Then paste the token here:"""

NOT_LOGGED_IN_TEXT = "You are not logged in. Run `copypasta login` first."
