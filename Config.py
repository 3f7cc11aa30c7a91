# Config.py
# Runtime configuration shared by the host and the client modules.
# Every value can be overridden with a NETSIM_* environment variable.

import os


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


# ----------------------------
# HOST
# ----------------------------
APP_TITLE = "Device Network Host"
HOST = os.getenv("NETSIM_HOST", "127.0.0.1")
PORT = _env_int("NETSIM_PORT", 4000)

BROADCAST_INTERVAL_S = _env_float("NETSIM_BROADCAST_INTERVAL_S", 3.0)
NETWORK_QUALITY = 85

ROOT_ID = "server-1"
CONTROL_PC_ID = "pc-1"
PERMANENT_IDS = (ROOT_ID, CONTROL_PC_ID)

DEVICE_TYPES = ("temperature", "sound", "camera", "speaker", "computer")


# ----------------------------
# CLIENT
# ----------------------------
API_URL = os.getenv("NETSIM_API_URL", f"http://{HOST}:{PORT}")
WS_URL = os.getenv("NETSIM_WS_URL", f"ws://{HOST}:{PORT}/ws")
HTTP_TIMEOUT_S = _env_float("NETSIM_HTTP_TIMEOUT_S", 5.0)

MAX_RETRIES = _env_int("NETSIM_MAX_RETRIES", 5)
BASE_DELAY_S = _env_float("NETSIM_BASE_DELAY_S", 1.0)

# Canvas space the nodes are laid out in
CANVAS_MIN_X = 100.0
CANVAS_MAX_X = 900.0
CANVAS_MIN_Y = 100.0
CANVAS_MAX_Y = 600.0
MIN_NODE_DISTANCE = _env_float("NETSIM_MIN_NODE_DISTANCE", 120.0)
PLACEMENT_ATTEMPTS = _env_int("NETSIM_PLACEMENT_ATTEMPTS", 100)

# "retain" keeps nodes whose device vanished from a snapshot, "evict" drops them
STALE_NODE_POLICY = os.getenv("NETSIM_STALE_NODE_POLICY", "retain").lower()

HISTORY_LENGTH = _env_int("NETSIM_HISTORY_LENGTH", 20)
