from lockin.devices.lockin_tcp import (
    DEFAULT_COMMAND,
    DEFAULT_HOST,
    DEFAULT_PORT,
    as_text,
    read_lockin,
)
