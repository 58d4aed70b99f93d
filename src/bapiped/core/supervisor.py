from __future__ import annotations

import logging

from bapiped.domain.models import Action, Direction, PcmFlags, Worker


logger = logging.getLogger(__name__)


def has_topology(direction: Direction, profile: PcmFlags) -> bool:
    """Whether a fixed pipeline topology exists for the pair.

    Playback works for either profile; capture is only wired up for SCO.
    """
    if direction is Direction.SINK:
        return profile in (PcmFlags.PROFILE_A2DP, PcmFlags.PROFILE_SCO)
    return profile == PcmFlags.PROFILE_SCO


def evaluate(worker: Worker) -> Action:
    desc = worker.descriptor
    modes = desc.modes
    profile = desc.profile

    if modes == PcmFlags.NONE:
        return Action.STOP

    if profile == PcmFlags.NONE or profile == PcmFlags.PROFILE_MASK:
        return Action.STOP

    if profile == PcmFlags.PROFILE_SCO and not desc.codec_selected:
        logger.debug("worker.skip device=%s reason=sco_codec_not_selected", desc.device_id)
        return Action.STOP

    wanted = [
        direction
        for direction in (Direction.SINK, Direction.SOURCE)
        if modes & direction.flag and has_topology(direction, profile) and not worker.running(direction)
    ]
    if wanted == [Direction.SINK, Direction.SOURCE]:
        return Action.START_BOTH
    if wanted == [Direction.SINK]:
        return Action.START_SINK
    if wanted == [Direction.SOURCE]:
        return Action.START_SOURCE
    return Action.NO_CHANGE
