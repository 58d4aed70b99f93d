from __future__ import annotations

from dataclasses import dataclass

from bapiped.config import DaemonConfig
from bapiped.core.dispatch import DispatchContext
from bapiped.core.registry import WorkerRegistry
from bapiped.integrations.bluealsa import BlueAlsaClient
from bapiped.integrations.gstreamer import GstEngine
from bapiped.managers.pipeline_manager import PipelineLifecycleManager


@dataclass
class DaemonDeps:
    transport: BlueAlsaClient
    engine: GstEngine
    lifecycle: PipelineLifecycleManager
    registry: WorkerRegistry
    context: DispatchContext


def build_daemon_deps(
    config: DaemonConfig,
    *,
    transport: BlueAlsaClient | None = None,
    engine: GstEngine | None = None,
) -> DaemonDeps:
    transport = transport or BlueAlsaClient(service=config.service, bus=config.bus)
    engine = engine or GstEngine()
    lifecycle = PipelineLifecycleManager(engine=engine, registry_service=transport)
    registry = WorkerRegistry(lifecycle=lifecycle)
    context = DispatchContext(registry=registry)
    return DaemonDeps(
        transport=transport,
        engine=engine,
        lifecycle=lifecycle,
        registry=registry,
        context=context,
    )
