from __future__ import annotations

import argparse
import asyncio
import logging
from logging.handlers import RotatingFileHandler
import os
import signal
import sys
from typing import Callable

from bapiped import __version__
from bapiped.app import BapipeDaemon
from bapiped.config import (
    BapipePaths,
    DaemonConfig,
    ensure_directories,
    env_flag,
    resolve_paths,
    resolve_service_name,
)
from bapiped.constants import DAEMON_NAME, DEFAULT_LOG_LEVEL, DEFAULT_MAX_WATCH_FDS
from bapiped.errors import BapipeError


logger = logging.getLogger(__name__)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="BlueALSA to PipeWire pipeline daemon")
    parser.add_argument(
        "--dbus",
        default=os.getenv("BAPIPE_DBUS_SERVICE"),
        help="BlueALSA D-Bus service name or suffix (org.bluealsa.SUFFIX)",
    )
    parser.add_argument(
        "--bus",
        choices=("system", "session"),
        default=os.getenv("BAPIPE_BUS", "system"),
        help="Message bus to connect to",
    )
    parser.add_argument(
        "--max-watch-fds",
        type=int,
        default=int(os.getenv("BAPIPE_MAX_WATCH_FDS", str(DEFAULT_MAX_WATCH_FDS))),
        help="Upper bound on transport descriptors watched by the main loop",
    )
    parser.add_argument(
        "--socket-path",
        default=os.getenv("BAPIPE_SOCKET_PATH"),
        help="Override status API unix socket path",
    )
    parser.add_argument(
        "--no-api",
        action="store_true",
        default=env_flag("BAPIPE_NO_API"),
        help="Do not serve the status API",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("BAPIPE_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        help="Python log level",
    )
    parser.add_argument("--version", action="version", version=f"{DAEMON_NAME} {__version__}")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> DaemonConfig:
    return DaemonConfig(
        paths=resolve_paths(socket_override=args.socket_path),
        service=resolve_service_name(args.dbus),
        bus=args.bus,
        max_watch_fds=max(1, int(args.max_watch_fds)),
        api_enabled=not args.no_api,
        log_level=args.log_level,
    )


def configure_logging(paths: BapipePaths, log_level: str) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    file_handler = RotatingFileHandler(paths.log_dir / "bapiped.log", maxBytes=1_000_000, backupCount=3)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)


def install_signal_handlers(loop: asyncio.AbstractEventLoop, on_shutdown: Callable[[], None]) -> None:
    """Graceful shutdown on the first SIGINT/SIGTERM, default action after.

    SIGPIPE is ignored so writes to a PCM closed by BlueALSA fail with
    EPIPE instead of killing the process.
    """

    def _once(sig: signal.Signals) -> Callable[[], None]:
        def _handler() -> None:
            loop.remove_signal_handler(sig)
            signal.signal(sig, signal.SIG_DFL)
            logger.info("signal.received sig=%s", sig.name)
            on_shutdown()

        return _handler

    def _fallback(signum: int, _frame) -> None:
        signal.signal(signum, signal.SIG_DFL)
        on_shutdown()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _once(sig))
        except NotImplementedError:
            signal.signal(sig, _fallback)

    signal.signal(signal.SIGPIPE, signal.SIG_IGN)


async def _run(args: argparse.Namespace) -> int:
    config = build_config(args)
    ensure_directories(config.paths)
    configure_logging(config.paths, config.log_level)
    daemon = BapipeDaemon(config)

    install_signal_handlers(asyncio.get_running_loop(), daemon.request_shutdown)

    try:
        await daemon.start()
        await daemon.run()
    except BapipeError as exc:
        if not exc.fatal:
            raise
        logger.error("%s", exc)
        return 1
    finally:
        await daemon.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
