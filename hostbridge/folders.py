import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path

from . import codec
from .errors import FolderSetupError, ParseError

PROTOCOL_VERSION = "1.0.0"
INFO_FILENAME = "ae-mcp-info.json"
REQUESTS_DIRNAME = "requests"
RESPONSES_DIRNAME = "responses"

logger = logging.getLogger("hostbridge.folders")


@dataclass(frozen=True)
class BridgeLayout:
    base: Path
    requests: Path
    responses: Path
    info_file: Path

    @classmethod
    def from_base(cls, base_path) -> "BridgeLayout":
        base = Path(base_path).expanduser()
        return cls(
            base=base,
            requests=base / REQUESTS_DIRNAME,
            responses=base / RESPONSES_DIRNAME,
            info_file=base / INFO_FILENAME,
        )


def _make_dir(path: Path, log=logger) -> bool:
    """Create ``path`` if missing. Returns True when it was created."""
    if path.is_dir():
        return False
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FolderSetupError(path, e) from e
    if not path.is_dir():
        raise FolderSetupError(path, "not a directory")
    log.info("Created folder: %s", path)
    return True


def ensure_directories(layout: BridgeLayout, log=logger):
    for path in (layout.base, layout.requests, layout.responses):
        _make_dir(path, log)


def discovery_info(status: str, host_version: str | None = None) -> dict:
    return {
        "version": PROTOCOL_VERSION,
        "status": status,
        "timestamp": int(time.time() * 1000),
        "hostVersion": host_version,
        "protocol": "file",
    }


def read_discovery_file(base_path) -> dict | None:
    path = BridgeLayout.from_base(base_path).info_file
    try:
        info = codec.decode(codec.read_text(path))
    except (OSError, UnicodeDecodeError, ParseError):
        return None
    return info if isinstance(info, dict) else None


def write_discovery_file(layout: BridgeLayout, status: str, host_version: str | None = None, log=logger) -> bool:
    info = discovery_info(status, host_version)
    current = read_discovery_file(layout.base)
    if current is not None:
        # timestamp以外が同じなら書き換えない
        if all(current.get(k) == info[k] for k in ("version", "status", "hostVersion", "protocol")):
            log.debug("Service info file already up to date (%s)", status)
            return True
    tmp_path = layout.info_file.with_name(layout.info_file.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(codec.encode(info))
        os.replace(tmp_path, layout.info_file)
    except OSError as e:
        log.warning("Error writing service info: %s", e)
        return False
    log.debug("Service info file written: %s (%s)", layout.info_file, status)
    return True


def ensure_communication_layout(base_path, status: str = "running", host_version: str | None = None, log=logger) -> bool:
    layout = base_path if isinstance(base_path, BridgeLayout) else BridgeLayout.from_base(base_path)
    log.info("Setting up communication folders at: %s", layout.base)
    try:
        ensure_directories(layout, log)
    except FolderSetupError as e:
        log.error("Failed to set up communication folders: %s", e)
        return False
    log.debug("requestFolder: %s", layout.requests)
    log.debug("responseFolder: %s", layout.responses)
    write_discovery_file(layout, status, host_version, log)
    return True
