from prometheus_client import Counter

# Inbound updates by classification (message, callback, ignored).
UPDATE_TOTAL = Counter(
    "relay_updates_total",
    "Total number of Telegram updates received",
    ["kind"],
)

# Command usage counts by command name.
COMMAND_TOTAL = Counter(
    "relay_commands_total",
    "Total number of bot commands processed",
    ["command"],
)

# Content forwarded into target chats, by attachment kind.
FORWARDED_TOTAL = Counter(
    "relay_forwarded_total",
    "Total number of items relayed into target chats",
    ["kind"],
)

# Outbound Bot API failures by method.
SEND_ERRORS = Counter(
    "relay_send_errors_total",
    "Total number of failed outbound Telegram calls",
    ["method"],
)

# Snapshot write failures (chats or targets).
STORAGE_ERRORS = Counter(
    "relay_storage_errors_total",
    "Total number of failed snapshot writes",
    ["store"],
)
