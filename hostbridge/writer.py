import logging
import os
import re
import time
import uuid
from pathlib import Path

from . import codec
from .errors import ResponseWriteError

logger = logging.getLogger("hostbridge.writer")

_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def now_ms() -> int:
    return int(time.time() * 1000)


def is_valid_id(value) -> bool:
    return isinstance(value, str) and bool(_ID_RE.match(value)) and value not in (".", "..")


def _is_safe_filename(name: str) -> bool:
    if not name or name in (".", ".."):
        return False
    return not any(sep in name for sep in ("/", "\\", "\0", os.sep))


def build_response(rid, status: str, result=None, message: str | None = None) -> dict:
    response = {"id": rid, "timestamp": now_ms(), "status": status}
    if result is not None:
        response["result"] = result
    if message is not None:
        response["message"] = message
    return response


class ResponseWriter:
    def __init__(self, response_dir, log: logging.Logger = logger):
        self.response_dir = Path(response_dir)
        self.log = log

    def _resolve_id(self, response: dict, fallback_id) -> str:
        rid = response.get("id")
        if rid:
            return str(rid)
        if fallback_id:
            return str(fallback_id)
        return uuid.uuid4().hex

    def write_response(self, response: dict, fallback_id: str | None = None) -> Path | None:
        rid = self._resolve_id(response, fallback_id)
        response["id"] = rid
        try:
            if not _is_safe_filename(rid):
                raise ResponseWriteError(f"Unsafe response id: {rid!r}")
            path = self.response_dir / f"{rid}.json"
            tmp_path = path.with_name(path.name + ".tmp")
            self.log.debug("Attempting to write response file: %s", path)
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    f.write(codec.encode(response))
                # 同じidの既存レスポンスは上書き（last write wins）
                os.replace(tmp_path, path)
            except (OSError, TypeError, ValueError) as e:
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
                raise ResponseWriteError(f"Cannot write response {rid}: {e}") from e
        except ResponseWriteError as e:
            self.log.error("Error writing response: %s", e)
            return None
        self.log.info("Response written to: %s", path.name)
        return path
