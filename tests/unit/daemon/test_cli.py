from __future__ import annotations

import contextlib
import io
import unittest
from typing import Any, cast

from bapiped import cli


class _ApiStub:
    def __init__(self, result: dict[str, Any]) -> None:
        self.result = result
        self.paths: list[str] = []

    def request_sync(self, method: str, path: str) -> dict[str, Any]:
        self.paths.append(path)
        return self.result


WORKER = {
    "device_id": "/org/bluealsa/hci0/dev_00_11_22_33_44_55/a2dpsnk/source",
    "profile": ["a2dp"],
    "modes": ["sink"],
    "codec_selected": False,
    "channels": 2,
    "sampling": 44100,
    "pipelines": ["sink"],
    "open_channels": ["sink"],
}


class CliHelpersTests(unittest.TestCase):
    def test_format_worker(self) -> None:
        line = cli.format_worker(WORKER)
        self.assertIn("profile=a2dp", line)
        self.assertIn("2ch@44100Hz", line)
        self.assertIn("codec=no", line)
        self.assertIn("pipelines=sink", line)

    def test_format_worker_without_pipelines(self) -> None:
        line = cli.format_worker({"device_id": "/x", "profile": [], "modes": []})
        self.assertIn("profile=-", line)
        self.assertTrue(line.endswith("pipelines=idle"))

    def test_worker_command_strips_leading_slash(self) -> None:
        api = _ApiStub({"status": 200, "body": {"ok": True, "data": {"worker": WORKER}}})
        args = cli.build_parser().parse_args(["worker", WORKER["device_id"]])
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            rc = cli.cmd_worker(args, cast(Any, api))
        self.assertEqual(rc, 0)
        self.assertEqual(api.paths, ["/workers/org/bluealsa/hci0/dev_00_11_22_33_44_55/a2dpsnk/source"])
        self.assertIn("2ch@44100Hz", out.getvalue())

    def test_error_envelope_returns_nonzero(self) -> None:
        api = _ApiStub(
            {
                "status": 404,
                "body": {"ok": False, "data": None, "error": {"code": "E_NOT_FOUND", "message": "unknown PCM"}},
            }
        )
        args = cli.build_parser().parse_args(["workers"])
        err = io.StringIO()
        with contextlib.redirect_stderr(err):
            rc = cli.cmd_workers(args, cast(Any, api))
        self.assertEqual(rc, 1)
        self.assertIn("E_NOT_FOUND", err.getvalue())

    def test_empty_worker_list(self) -> None:
        api = _ApiStub({"status": 200, "body": {"ok": True, "data": {"workers": []}}})
        args = cli.build_parser().parse_args(["workers"])
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            rc = cli.cmd_workers(args, cast(Any, api))
        self.assertEqual(rc, 0)
        self.assertIn("No PCMs known.", out.getvalue())


class CliParserTests(unittest.TestCase):
    def test_parse_status_defaults(self) -> None:
        args = cli.build_parser().parse_args(["status"])
        self.assertEqual(args.command, "status")
        self.assertFalse(args.json)
        self.assertEqual(args.timeout, 5.0)

    def test_parse_worker(self) -> None:
        args = cli.build_parser().parse_args(["--json", "--socket-path", "/tmp/b.sock", "worker", "/org/bluealsa/x"])
        self.assertEqual(args.command, "worker")
        self.assertEqual(args.device_id, "/org/bluealsa/x")
        self.assertEqual(args.socket_path, "/tmp/b.sock")
        self.assertTrue(args.json)

    def test_command_is_required(self) -> None:
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                cli.build_parser().parse_args([])


if __name__ == "__main__":
    unittest.main()
