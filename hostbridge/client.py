import os
import sys
import time
import uuid
from pathlib import Path

from . import codec
from .errors import ParseError, RemoteExecutionError, ServiceNotRunningError
from .folders import BridgeLayout, read_discovery_file

ENV_BRIDGE_DIR = "HOSTBRIDGE_DIR"


def resolve_base(arg_path: str | None = None) -> Path:
    # 明示引数 > 環境変数 HOSTBRIDGE_DIR > ~/Documents/AE-MCP
    if arg_path:
        return Path(arg_path).expanduser().resolve()
    env = os.environ.get(ENV_BRIDGE_DIR)
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / "Documents" / "AE-MCP").resolve()


def new_request_id() -> str:
    return f"py_{int(time.time()*1000)}_{uuid.uuid4().hex[:12]}"


def is_service_running(bridge_dir: str | None = None) -> bool:
    info = read_discovery_file(resolve_base(bridge_dir))
    return bool(info) and info.get("status") == "running"


def write_request(req: dict, bridge_dir: str | None = None) -> str:
    layout = BridgeLayout.from_base(resolve_base(bridge_dir))
    layout.requests.mkdir(parents=True, exist_ok=True)
    req = dict(req)
    req.setdefault("id", new_request_id())
    req.setdefault("timestamp", int(time.time() * 1000))
    in_path = layout.requests / f"{req['id']}.json"
    # .json で終わらない一時名に書いてから rename（サービスは *.json しか見ない）
    tmp_path = in_path.with_suffix(in_path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(codec.encode(req))
    tmp_path.replace(in_path)
    return req["id"]


def wait_response(rid: str, timeout: float = 30.0, bridge_dir: str | None = None, interval: float = 0.05) -> dict:
    out_path = BridgeLayout.from_base(resolve_base(bridge_dir)).responses / f"{rid}.json"
    end = time.time() + timeout
    while time.time() < end:
        if out_path.exists():
            try:
                resp = codec.decode(codec.read_text(out_path))
            except ParseError:
                # 書き込み途中の可能性（通常は rename されるので起きない）
                time.sleep(interval)
                continue
            try:
                out_path.unlink()
            except OSError:
                pass
            return resp
        time.sleep(interval)
    raise TimeoutError(f"No response for request {rid}.")


def send(req: dict, timeout: float = 30.0, bridge_dir: str | None = None, require_running: bool = True) -> dict:
    if require_running and not is_service_running(bridge_dir):
        raise ServiceNotRunningError(f"Bridge service is not running at {resolve_base(bridge_dir)}")
    rid = write_request(req, bridge_dir)
    return wait_response(rid, timeout=timeout, bridge_dir=bridge_dir)


def ping(timeout: float = 10.0, bridge_dir: str | None = None) -> bool:
    resp = send({"command": "ping"}, timeout=timeout, bridge_dir=bridge_dir)
    return resp.get("status") == "ok" and resp.get("result") == "pong"


def execute_script(script: str, timeout: float = 30.0, bridge_dir: str | None = None):
    resp = send({"command": "execute", "script": script}, timeout=timeout, bridge_dir=bridge_dir)
    if resp.get("status") == "error":
        raise RemoteExecutionError(resp.get("message") or "unknown error", resp)
    return resp.get("result")


def main():
    # Usage: python -m hostbridge.client '<json_request>' [timeout] [bridge_dir]
    if len(sys.argv) < 2:
        print("Usage: hostbridge-send '<json_request>' [timeout] [bridge_dir]", file=sys.stderr)
        sys.exit(1)
    try:
        req = codec.decode_request(sys.argv[1])
    except ParseError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    to = float(sys.argv[2]) if len(sys.argv) > 2 else 30.0
    bridge = sys.argv[3] if len(sys.argv) > 3 else None
    try:
        resp = send(req, timeout=to, bridge_dir=bridge)
    except (ServiceNotRunningError, TimeoutError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)
    print(codec.encode(resp, indent=None))


if __name__ == "__main__":
    main()
