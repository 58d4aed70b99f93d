from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

from bapiped.constants import (
    APP_NAME,
    BLUEALSA_SERVICE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_WATCH_FDS,
    SOCKET_FILENAME,
    fallback_runtime_dir,
)


@dataclass(frozen=True)
class BapipePaths:
    runtime_dir: Path
    socket_path: Path
    state_dir: Path
    log_dir: Path


@dataclass(frozen=True)
class DaemonConfig:
    paths: BapipePaths
    service: str = BLUEALSA_SERVICE
    bus: str = "system"
    max_watch_fds: int = DEFAULT_MAX_WATCH_FDS
    api_enabled: bool = True
    log_level: str = DEFAULT_LOG_LEVEL


def _xdg_dir(env_key: str, fallback_suffix: str) -> Path:
    env_val = os.getenv(env_key)
    if env_val:
        return Path(env_val) / APP_NAME
    return Path.home() / fallback_suffix / APP_NAME


def resolve_paths(socket_override: str | None = None) -> BapipePaths:
    uid = os.getuid()
    runtime_root = os.getenv("XDG_RUNTIME_DIR")
    runtime_dir = Path(runtime_root) / APP_NAME if runtime_root else fallback_runtime_dir(uid)

    socket_path = Path(socket_override) if socket_override else runtime_dir / SOCKET_FILENAME
    state_dir = _xdg_dir("XDG_STATE_HOME", ".local/state")
    log_dir = state_dir / "logs"

    return BapipePaths(
        runtime_dir=runtime_dir,
        socket_path=socket_path,
        state_dir=state_dir,
        log_dir=log_dir,
    )


def resolve_service_name(value: str | None) -> str:
    """Map a ``--dbus`` value to a BlueALSA bus name.

    BlueALSA instances started with ``-B NAME`` register as
    ``org.bluealsa.NAME``, so a bare suffix is expanded the same way.
    """
    if not value:
        return BLUEALSA_SERVICE
    if value.startswith(BLUEALSA_SERVICE):
        return value
    return f"{BLUEALSA_SERVICE}.{value}"


def env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def ensure_directories(paths: BapipePaths) -> None:
    paths.runtime_dir.mkdir(parents=True, exist_ok=True)
    os.chmod(paths.runtime_dir, 0o700)
    paths.state_dir.mkdir(parents=True, exist_ok=True)
    paths.log_dir.mkdir(parents=True, exist_ok=True)


def remove_stale_socket(paths: BapipePaths) -> None:
    if paths.socket_path.exists():
        if paths.socket_path.is_socket():
            paths.socket_path.unlink()
