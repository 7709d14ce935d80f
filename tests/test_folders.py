from hostbridge import codec
from hostbridge.folders import (
    INFO_FILENAME,
    PROTOCOL_VERSION,
    BridgeLayout,
    ensure_communication_layout,
    read_discovery_file,
    write_discovery_file,
)


def snapshot(root):
    return {
        str(p.relative_to(root)): (p.read_bytes() if p.is_file() else None)
        for p in sorted(root.rglob("*"))
    }


def test_layout_paths(tmp_path):
    layout = BridgeLayout.from_base(tmp_path / "b")
    assert layout.requests == tmp_path / "b" / "requests"
    assert layout.responses == tmp_path / "b" / "responses"
    assert layout.info_file == tmp_path / "b" / INFO_FILENAME


def test_creates_directories_and_discovery_file(tmp_path):
    base = tmp_path / "nested" / "bridge"
    assert ensure_communication_layout(base, host_version="test 1.0")
    assert (base / "requests").is_dir()
    assert (base / "responses").is_dir()
    info = read_discovery_file(base)
    assert info["version"] == PROTOCOL_VERSION
    assert info["status"] == "running"
    assert info["hostVersion"] == "test 1.0"
    assert info["protocol"] == "file"
    assert isinstance(info["timestamp"], int)


def test_setup_twice_leaves_tree_unchanged(tmp_path):
    base = tmp_path / "bridge"
    assert ensure_communication_layout(base, host_version="h")
    (base / "requests" / "keep.json").write_text('{"command": "ping"}', encoding="utf-8")
    (base / "responses" / "old.json").write_text("{}", encoding="utf-8")
    before = snapshot(base)
    assert ensure_communication_layout(base, host_version="h")
    assert snapshot(base) == before


def test_status_change_rewrites_discovery_file(tmp_path):
    base = tmp_path / "bridge"
    assert ensure_communication_layout(base)
    assert write_discovery_file(BridgeLayout.from_base(base), "stopped")
    assert read_discovery_file(base)["status"] == "stopped"
    assert not (base / (INFO_FILENAME + ".tmp")).exists()


def test_fails_when_base_is_a_file(tmp_path):
    base = tmp_path / "bridge"
    base.write_text("not a folder", encoding="utf-8")
    assert ensure_communication_layout(base) is False
    assert base.read_text(encoding="utf-8") == "not a folder"


def test_read_discovery_file_missing_or_corrupt(tmp_path):
    assert read_discovery_file(tmp_path) is None
    (tmp_path / INFO_FILENAME).write_text("{broken", encoding="utf-8")
    assert read_discovery_file(tmp_path) is None
    (tmp_path / INFO_FILENAME).write_text(codec.encode(["x"]), encoding="utf-8")
    assert read_discovery_file(tmp_path) is None
