from __future__ import annotations

import logging

from aiohttp import web

from bapiped.api.server import create_api_app
from bapiped.bootstrap import DaemonDeps, build_daemon_deps
from bapiped.config import DaemonConfig, ensure_directories, remove_stale_socket
from bapiped.core.dispatch import EventDispatchLoop
from bapiped.core.state_store import LoopState
from bapiped.errors import BapipeError
from bapiped.managers.topology import REQUIRED_ELEMENTS


logger = logging.getLogger(__name__)


class BapipeDaemon:
    def __init__(self, config: DaemonConfig, *, deps: DaemonDeps | None = None) -> None:
        self.config = config
        deps = deps or build_daemon_deps(config)
        self.transport = deps.transport
        self.engine = deps.engine
        self.lifecycle = deps.lifecycle
        self.registry = deps.registry
        self.context = deps.context
        self._loop = EventDispatchLoop(
            context=self.context,
            transport=self.transport,
            max_watch_fds=config.max_watch_fds,
        )
        self._runner: web.AppRunner | None = None
        self._site: web.UnixSite | None = None

    async def start(self) -> None:
        """Connect, subscribe and seed the registry.

        Connection and subscription failures raise ``TransportError`` and
        are fatal; a failed enumeration only leaves the registry empty.
        """
        ensure_directories(self.config.paths)

        missing = self.engine.missing_elements(REQUIRED_ELEMENTS)
        if missing:
            logger.warning("gstreamer.missing_elements elements=%s", ",".join(missing))

        await self.transport.connect()
        await self.transport.subscribe(self.context.push)

        try:
            descriptors = await self.transport.enumerate_pcms()
        except BapipeError as exc:
            logger.warning("Couldn't get BlueALSA PCM list: %s", exc)
            descriptors = []
        for descriptor in descriptors:
            await self.registry.upsert(descriptor)

        if self.config.api_enabled:
            await self._start_api()

    async def _start_api(self) -> None:
        remove_stale_socket(self.config.paths)
        app = create_api_app(
            registry=self.registry,
            loop_state=self.context.state,
            config=self.config,
        )
        self._runner = web.AppRunner(app, access_log=None)
        assert self._runner is not None
        await self._runner.setup()
        self._site = web.UnixSite(self._runner, path=str(self.config.paths.socket_path))
        assert self._site is not None
        await self._site.start()
        logger.info("bapiped listening on unix socket: %s", self.config.paths.socket_path)

    async def run(self) -> None:
        await self._loop.run()

    async def stop(self) -> None:
        self.context.request_shutdown()
        self.registry.teardown_all()
        self.context.state.transition(LoopState.TERMINATED)
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            remove_stale_socket(self.config.paths)
        self.transport.disconnect()
        logger.info("bapiped stopped")

    def request_shutdown(self) -> None:
        self.context.request_shutdown()
