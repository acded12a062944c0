"""A tiny stdio MCP server used by the end-to-end tests.

Run as a child process: reads newline-delimited JSON-RPC from stdin and
answers on stdout.  Emits a banner line and stderr chatter so the client's
line filtering and stderr draining are exercised too.
"""

from __future__ import annotations

import json
import sys
from typing import Any

TOOLS = [
    {
        "name": "get-state",
        "description": "Get the state of an entity",
        "inputSchema": {
            "type": "object",
            "properties": {"entity_id": {"type": "string"}},
            "required": ["entity_id"],
        },
    },
    {"name": "snapshot", "description": "Camera snapshot"},
    {"name": "restart", "description": "Restart the server"},
]


def write(message: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def result(request_id: Any, payload: Any) -> None:
    write({"jsonrpc": "2.0", "id": request_id, "result": payload})


def call_tool(params: dict[str, Any]) -> dict[str, Any]:
    name = params.get("name")
    arguments = params.get("arguments", {})
    if name == "get-state":
        entity_id = arguments.get("entity_id", "")
        if not entity_id.startswith("light."):
            return {"content": [{"type": "text", "text": "entity not found"}], "isError": True}
        return {"content": [{"type": "text", "text": f"{entity_id} is on"}]}
    if name == "snapshot":
        return {
            "content": [
                {"type": "text", "text": "Result line 1"},
                {"type": "image", "data": "aGVsbG8=", "mimeType": "image/png"},
                {"type": "text", "text": "Result line 2"},
            ]
        }
    return {"content": [{"type": "text", "text": f"unknown tool {name}"}], "isError": True}


def main() -> None:
    sys.stdout.write("fake MCP server starting\n")
    sys.stdout.flush()
    print("fake MCP server ready", file=sys.stderr, flush=True)

    for line in iter(sys.stdin.readline, ""):
        if not line.strip():
            continue
        message = json.loads(line)
        method = message.get("method")
        request_id = message.get("id")
        params = message.get("params") or {}

        if request_id is None:
            continue
        if method == "initialize":
            result(
                request_id,
                {
                    "protocolVersion": "2024-11-05",
                    "serverInfo": {"name": "fake-ha", "version": "0.0.1"},
                    "capabilities": {"tools": {}},
                },
            )
        elif method == "tools/list":
            result(request_id, {"tools": TOOLS})
        elif method == "tools/call":
            result(request_id, call_tool(params))
        elif method == "ping":
            result(request_id, {})
        elif method == "subscribe_events":
            event_type = params["event_type"]
            result(request_id, {"subscribed": event_type})
            write(
                {
                    "jsonrpc": "2.0",
                    "method": "event",
                    "params": {
                        "type": event_type,
                        "data": {"subscribed": True},
                        "origin": "LOCAL",
                        "time_fired": "2024-05-01T12:00:00+00:00",
                    },
                }
            )
        else:
            write(
                {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "error": {"code": -32601, "message": f"Method not found: {method}"},
                }
            )


if __name__ == "__main__":
    main()
