from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any

from aiohttp import ClientSession, ClientTimeout, UnixConnector

from bapiped.config import resolve_paths


class CliApiClient:
    def __init__(self, socket_path: str, timeout_s: float = 5.0) -> None:
        self.socket_path = socket_path
        self.timeout_s = timeout_s

    async def request(self, method: str, path: str) -> dict[str, Any]:
        connector = UnixConnector(path=self.socket_path)
        timeout = ClientTimeout(total=self.timeout_s, connect=2, sock_connect=2, sock_read=self.timeout_s)
        try:
            async with ClientSession(connector=connector, timeout=timeout) as session:
                async with session.request(method, f"http://localhost{path}") as resp:
                    try:
                        body = await resp.json(content_type=None)
                    except Exception:
                        body = {
                            "ok": False,
                            "data": None,
                            "error": {
                                "code": "E_BAD_RESPONSE",
                                "message": "daemon returned non-JSON response",
                            },
                        }
                    return {"status": int(resp.status), "body": body}
        except Exception as exc:
            return {
                "status": 0,
                "body": {
                    "ok": False,
                    "data": None,
                    "error": {
                        "code": "E_DAEMON_UNREACHABLE",
                        "message": str(exc),
                        "details": {"socket_path": self.socket_path},
                    },
                },
            }

    def request_sync(self, method: str, path: str) -> dict[str, Any]:
        return asyncio.run(self.request(method, path))


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, sort_keys=True))


def _request_data(api: CliApiClient, *, path: str) -> tuple[dict[str, Any] | None, dict[str, Any]]:
    result = api.request_sync("GET", path)
    body = result.get("body") if isinstance(result, dict) else {}
    status = result.get("status") if isinstance(result, dict) else 0
    if not isinstance(body, dict) or not body.get("ok"):
        err = body.get("error", {}) if isinstance(body, dict) else {}
        code = str(err.get("code", "E_UNKNOWN"))
        message = str(err.get("message", "request failed"))
        details = err.get("details")
        print(f"Error ({status}): {code}: {message}", file=sys.stderr)
        if isinstance(details, dict) and details:
            _print_json({"details": details})
        return None, result
    data = body.get("data")
    if not isinstance(data, dict):
        return {}, result
    return data, result


def format_worker(worker: dict[str, Any]) -> str:
    profile = ",".join(worker.get("profile") or []) or "-"
    modes = ",".join(worker.get("modes") or []) or "-"
    pipelines = ",".join(worker.get("pipelines") or []) or "idle"
    return (
        f"{worker.get('device_id', '?')} profile={profile} modes={modes} "
        f"{worker.get('channels', 0)}ch@{worker.get('sampling', 0)}Hz "
        f"codec={'yes' if worker.get('codec_selected') else 'no'} pipelines={pipelines}"
    )


def cmd_status(args: argparse.Namespace, api: CliApiClient) -> int:
    data, result = _request_data(api, path="/status")
    if data is None:
        return 1
    if args.json:
        _print_json(result)
        return 0

    service = data.get("service", {}) if isinstance(data, dict) else {}
    loop = data.get("loop", {}) if isinstance(data, dict) else {}
    workers = data.get("workers", {}) if isinstance(data, dict) else {}
    print(f"Daemon: {service.get('daemon', 'unknown')} {service.get('version', '')}".rstrip())
    print(f"BlueALSA: {service.get('bluealsa_service', 'unknown')} ({service.get('bus', '?')} bus)")
    print(f"Loop: {loop.get('state', 'unknown')} | notifications: {loop.get('notifications', 0)} | discarded: {loop.get('discarded', 0)}")
    print(f"Workers: {workers.get('count', 0)} | running pipelines: {workers.get('running_pipelines', 0)}")
    return 0


def cmd_workers(args: argparse.Namespace, api: CliApiClient) -> int:
    data, result = _request_data(api, path="/workers")
    if data is None:
        return 1
    if args.json:
        _print_json(result)
        return 0
    workers = data.get("workers") if isinstance(data, dict) else None
    if not isinstance(workers, list) or not workers:
        print("No PCMs known.")
        return 0
    for worker in workers:
        if isinstance(worker, dict):
            print(format_worker(worker))
    return 0


def cmd_worker(args: argparse.Namespace, api: CliApiClient) -> int:
    data, result = _request_data(api, path="/workers/" + args.device_id.lstrip("/"))
    if data is None:
        return 1
    if args.json:
        _print_json(result)
        return 0
    worker = data.get("worker")
    if isinstance(worker, dict):
        print(format_worker(worker))
    return 0


def _default_socket_path() -> str:
    env = os.getenv("BAPIPE_SOCKET_PATH")
    if env:
        return env
    return str(resolve_paths().socket_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bapipectl", description="Inspect a running bapiped")
    parser.add_argument("--socket-path", default=_default_socket_path(), help="UNIX socket path for bapiped")
    parser.add_argument("--timeout", type=float, default=5.0, help="Request timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Print full API response JSON")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show daemon and dispatch loop status")
    sub.add_parser("workers", help="List known PCMs and their pipelines")
    worker = sub.add_parser("worker", help="Show one PCM")
    worker.add_argument("device_id", help="PCM object path")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])
    api = CliApiClient(socket_path=args.socket_path, timeout_s=float(args.timeout))

    if args.command == "status":
        return cmd_status(args, api)
    if args.command == "workers":
        return cmd_workers(args, api)
    if args.command == "worker":
        return cmd_worker(args, api)
    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
