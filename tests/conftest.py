"""Shared fakes for driveup tests."""
import asyncio
from typing import Any, Dict, List, Optional

import httpx
import pytest

from driveup.exceptions import APIError
from driveup.services.api_client import CancelToken


class FakeDriveAPI:
    """In-memory stand-in for HTTPAPIClient recording every call."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.existing: set = set()            # {(path, name)} answered by op=find
        self.listings: Dict[str, List[str]] = {}
        self.missing_dirs: set = set()        # listing returns 404
        self.failing_dirs: set = set()        # directory creation fails
        self.sessions: Dict[str, List[dict]] = {}
        self.failing_parts: set = set()       # part numbers answered with 500
        self.part_delays: Dict[int, float] = {}
        self.fail_session_delete = False
        self.fail_find = False
        self.manifests: List[dict] = []
        self.streams: List[dict] = []
        self.cancel_token = CancelToken()
        self.in_flight = 0
        self.max_in_flight = 0
        self._next_part_id = 1000

    def calls_to(self, method: str, prefix: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method and c[1].startswith(prefix)]

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        allow_status=(),
        retry_if=None,
    ) -> httpx.Response:
        self.calls.append((method, endpoint, params, json))
        await asyncio.sleep(0)

        if endpoint == "/api/files" and method == "GET" and params["op"] == "find":
            if self.fail_find:
                raise APIError(500, method, endpoint, "find failed")
            if (params["path"], params["name"]) in self.existing:
                return httpx.Response(200, json={"files": [{"name": params["name"]}]})
            return httpx.Response(404, json={"message": "not found"})

        if endpoint == "/api/files" and method == "GET" and params["op"] == "list":
            path = params["path"]
            if path in self.missing_dirs:
                raise APIError(404, method, endpoint, "not found")
            names = self.listings.get(path, [])
            return httpx.Response(
                200,
                json={"files": [{"name": n, "type": "file"} for n in names], "meta": {"totalPages": 1}},
            )

        if endpoint == "/api/files/directories":
            if json["path"] in self.failing_dirs:
                raise APIError(500, method, endpoint, "mkdir failed")
            return httpx.Response(200, json={})

        if endpoint == "/api/files" and method == "POST":
            self.manifests.append(json)
            return httpx.Response(200, json={"id": "file-1"})

        if endpoint.startswith("/api/uploads/"):
            session_id = endpoint.rsplit("/", 1)[1]
            if method == "GET":
                if session_id not in self.sessions:
                    raise APIError(404, method, endpoint, "no session")
                return httpx.Response(200, json={"parts": self.sessions[session_id]})
            if method == "DELETE":
                if self.fail_session_delete:
                    raise APIError(500, method, endpoint, "delete failed")
                self.sessions.pop(session_id, None)
                return httpx.Response(200, json={})

        raise AssertionError(f"unexpected call {method} {endpoint} {params}")

    async def post_stream(self, endpoint, params, content, content_length) -> httpx.Response:
        self.calls.append(("POST", endpoint, params, None))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            body = b""
            async for chunk in content:
                body += chunk
            part_no = int(params["partNo"])
            await asyncio.sleep(self.part_delays.get(part_no, 0.001))
        finally:
            self.in_flight -= 1

        self.streams.append({"endpoint": endpoint, "params": params, "body": body, "length": content_length})
        if part_no in self.failing_parts:
            return httpx.Response(500, json={"message": "boom"})

        self._next_part_id += 1
        return httpx.Response(
            201,
            json={
                "name": params["partName"],
                "partId": self._next_part_id,
                "partNo": part_no,
                "channelId": int(params["channelId"]),
                "size": len(body),
                "encrypted": params["encrypted"] == "true",
                "salt": f"salt-{part_no}",
            },
        )

    @staticmethod
    def part(part_no: int, part_id: int, size: int, channel_id: int = 0, encrypted: bool = False) -> dict:
        return {
            "name": f"part-{part_no}",
            "partId": part_id,
            "partNo": part_no,
            "channelId": channel_id,
            "size": size,
            "encrypted": encrypted,
            "salt": f"old-salt-{part_no}",
        }


@pytest.fixture
def fake_api():
    return FakeDriveAPI()
