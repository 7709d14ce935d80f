import time

import pytest

from hostbridge import codec
from hostbridge.service import BridgeService


def wait_for(predicate, timeout=5.0, interval=0.02):
    end = time.time() + timeout
    while time.time() < end:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def write_request(base, name, payload):
    path = base / "requests" / name
    if isinstance(payload, (dict, list)):
        payload = codec.encode(payload)
    path.write_text(payload, encoding="utf-8")
    return path


def read_response(base, rid):
    return codec.decode((base / "responses" / f"{rid}.json").read_text(encoding="utf-8"))


@pytest.fixture
def make_service():
    services = []

    def factory(**kwargs):
        kwargs.setdefault("poll_interval", 60.0)
        svc = BridgeService(**kwargs)
        services.append(svc)
        return svc

    yield factory
    for svc in services:
        svc.close()


@pytest.fixture
def running(make_service, tmp_path):
    """A started service with a long interval; drive it with poll_now()."""
    base = tmp_path / "bridge"
    svc = make_service()
    assert svc.start(base)
    return svc, base
