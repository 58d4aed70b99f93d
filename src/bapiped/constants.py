from pathlib import Path


APP_NAME = "bapipe"
DAEMON_NAME = "bapiped"
API_VERSION = "v1"
SOCKET_FILENAME = "daemon.sock"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_WATCH_FDS = 10

BLUEALSA_SERVICE = "org.bluealsa"
BLUEALSA_MANAGER_PATH = "/org/bluealsa"
BLUEALSA_INTERFACE_MANAGER = "org.bluealsa.Manager1"
BLUEALSA_INTERFACE_PCM = "org.bluealsa.PCM1"
DBUS_SERVICE = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"
DBUS_INTERFACE_PROPERTIES = "org.freedesktop.DBus.Properties"

# Output side of every pipeline (what the PipeWire graph sees).
BACKEND_FORMAT = "F32LE"
BACKEND_SAMPLE_BYTES = 4
BACKEND_RATE = 48000
CAPTURE_QUEUE_MS = 50

# Device side of every pipeline (what BlueALSA reads/writes).
DEVICE_FORMAT = "S16LE"


def fallback_runtime_dir(uid: int) -> Path:
    return Path(f"/tmp/{APP_NAME}-{uid}")
