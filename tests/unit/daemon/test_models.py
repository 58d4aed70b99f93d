from __future__ import annotations

import os
import unittest

from bapiped.domain.models import Direction, PcmChannel, PcmDescriptor, PcmFlags, PcmPropertyChanges, Worker


class PropertyChangesTests(unittest.TestCase):
    def test_profile_and_modes_replace_their_half(self) -> None:
        desc = PcmDescriptor(device_id="/pcm", flags=PcmFlags.PROFILE_A2DP | PcmFlags.SINK, channels=2, sampling=48000)
        out = PcmPropertyChanges(modes=PcmFlags.SOURCE).apply_to(desc)
        self.assertEqual(out.flags, PcmFlags.PROFILE_A2DP | PcmFlags.SOURCE)
        out = PcmPropertyChanges(profile=PcmFlags.PROFILE_SCO).apply_to(out)
        self.assertEqual(out.flags, PcmFlags.PROFILE_SCO | PcmFlags.SOURCE)
        self.assertEqual((out.channels, out.sampling), (2, 48000))

    def test_empty_changes_keep_descriptor(self) -> None:
        desc = PcmDescriptor(device_id="/pcm", flags=PcmFlags.SINK, codec_selected=True, channels=1, sampling=8000)
        changes = PcmPropertyChanges()
        self.assertEqual(changes.apply_to(desc), desc)


class PcmChannelTests(unittest.TestCase):
    def test_close_releases_both_descriptors_once(self) -> None:
        read_fd, write_fd = os.pipe()
        channel = PcmChannel(data_fd=read_fd, control_fd=write_fd)
        channel.close()
        self.assertTrue(channel.closed)
        for fd in (read_fd, write_fd):
            with self.assertRaises(OSError):
                os.fstat(fd)
        channel.close()


class WorkerTests(unittest.TestCase):
    def test_as_dict(self) -> None:
        worker = Worker(
            descriptor=PcmDescriptor(
                device_id="/pcm",
                flags=PcmFlags.PROFILE_SCO | PcmFlags.SINK | PcmFlags.SOURCE,
                codec_selected=True,
                channels=1,
                sampling=16000,
            )
        )
        worker.pipelines[Direction.SOURCE] = object()
        data = worker.as_dict()
        self.assertEqual(data["profile"], ["sco"])
        self.assertEqual(data["modes"], ["source", "sink"])
        self.assertEqual(data["pipelines"], ["source"])
        self.assertEqual(data["open_channels"], [])
        self.assertFalse(worker.fully_stopped())


if __name__ == "__main__":
    unittest.main()
