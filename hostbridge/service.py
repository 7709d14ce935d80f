import enum
import itertools
import logging
import os
import platform
import threading
from dataclasses import dataclass

from . import codec
from .errors import FolderSetupError, ParseError
from .executor import CommandExecutor
from .folders import BridgeLayout, ensure_communication_layout, ensure_directories, write_discovery_file
from .logsink import VERBOSE, Severity, SinkHandler
from .writer import ResponseWriter, build_response, is_valid_id

DEFAULT_POLL_INTERVAL = 0.3

_instance_ids = itertools.count(1)


class State(enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class ServiceState:
    state: State = State.STOPPED
    layout: BridgeLayout | None = None
    writer: ResponseWriter | None = None
    timer: threading.Timer | None = None
    generation: int = 0


def default_host_version() -> str:
    return f"{platform.python_implementation()} {platform.python_version()}"


class BridgeService:
    def __init__(self, host=None, poll_interval: float = DEFAULT_POLL_INTERVAL, log_sink=None,
                 verbosity=Severity.INFO, host_version: str | None = None, name: str | None = None):
        self.poll_interval = max(0.0, float(poll_interval))
        self.host_version = host_version or default_host_version()
        self.log = logging.getLogger(f"hostbridge.service.{name or next(_instance_ids)}")
        self.log.setLevel(VERBOSE)
        self.sink_handler = SinkHandler(log_sink, verbosity)
        self.log.addHandler(self.sink_handler)
        self.executor = CommandExecutor(host, log=self.log.getChild("executor"))
        self.state = ServiceState()
        self._generation = 0
        self._lock = threading.RLock()
        # poll_now() とタイマーの tick が重ならないように
        self._tick_lock = threading.Lock()
        self._stopped = threading.Event()
        self._stopped.set()

    @property
    def is_running(self) -> bool:
        return self.state.state is State.RUNNING

    def status(self) -> dict:
        st = self.state
        resp = {"status": st.state.value}
        if st.layout is not None:
            resp["base"] = str(st.layout.base)
            resp["requests"] = str(st.layout.requests)
            resp["responses"] = str(st.layout.responses)
        resp["pending_tick"] = st.timer is not None
        return resp

    def start(self, base_path) -> bool:
        with self._lock:
            if self.state.state is not State.STOPPED:
                self.log.info("Restarting service...")
                self.stop()
            self.log.info("Starting service...")
            self._generation += 1
            self.state = ServiceState(state=State.STARTING, generation=self._generation)
            layout = BridgeLayout.from_base(base_path)
            if not ensure_communication_layout(layout, "running", self.host_version, log=self.log):
                self.log.error("Failed to set up communication folders")
                self.state = ServiceState()
                return False
            self.state.layout = layout
            self.state.writer = ResponseWriter(layout.responses, log=self.log.getChild("writer"))
            self.state.state = State.RUNNING
            self._stopped.clear()
            self._arm()
            self.log.info("Service started")
            return True

    def stop(self):
        with self._lock:
            if self.state.state is State.STOPPED:
                return
            self.log.info("Stopping service...")
            self.state.state = State.STOPPING
            if self.state.timer is not None:
                self.state.timer.cancel()
            layout = self.state.layout
            self.state = ServiceState()
            if layout is not None:
                write_discovery_file(layout, "stopped", self.host_version, log=self.log)
            self._stopped.set()
            self.log.info("Service stopped")

    def close(self):
        self.stop()
        self.log.removeHandler(self.sink_handler)

    def serve_forever(self, check_interval: float = 0.5):
        try:
            while not self._stopped.wait(check_interval):
                pass
        except KeyboardInterrupt:
            self.log.info("Interrupted")
        finally:
            self.stop()

    def poll_now(self) -> int:
        st = self.state
        if st.state is not State.RUNNING:
            self.log.info("Service is not running. Please start the service first.")
            return 0
        self.log.info("Manually refreshing service state...")
        try:
            with self._tick_lock:
                return self._tick(st.layout, st.writer)
        except Exception:
            self.log.exception("Error checking for requests")
            return 0

    def _arm(self):
        st = self.state
        timer = threading.Timer(self.poll_interval, self._on_timer, args=(st.generation,))
        timer.daemon = True
        st.timer = timer
        timer.start()

    def _current(self, generation: int) -> bool:
        st = self.state
        return st.state is State.RUNNING and st.generation == generation

    def _on_timer(self, generation: int):
        with self._lock:
            if not self._current(generation):
                return
            st = self.state
            st.timer = None
        try:
            with self._tick_lock:
                if self._current(generation):
                    self._tick(st.layout, st.writer)
        except Exception:
            self.log.exception("Error checking for requests")
        finally:
            with self._lock:
                # stop() 済み、または再起動後の古い tick なら再スケジュールしない
                if self._current(generation):
                    self._arm()

    def _tick(self, layout: BridgeLayout, writer: ResponseWriter) -> int:
        if not (layout.requests.is_dir() and layout.responses.is_dir()):
            self.log.warning("Communication folders missing, trying to recreate")
            try:
                ensure_directories(layout, self.log)
            except FolderSetupError as e:
                self.log.error("%s", e)
                return 0
            write_discovery_file(layout, "running", self.host_version, log=self.log)
        files = [f for f in os.listdir(layout.requests) if f.endswith(".json")]
        files.sort()
        processed = 0
        for fname in files:
            in_path = layout.requests / fname
            if not in_path.is_file():
                self.log.warning("Skipping non-file object: %s", fname)
                continue
            self.log.info("Found request file: %s", fname)
            try:
                self._process_request_file(in_path, writer)
                processed += 1
            finally:
                try:
                    os.remove(in_path)
                    self.log.debug("Deleted request file: %s", fname)
                except OSError as e:
                    self.log.error("Failed to delete request file %s: %s", fname, e)
        return processed

    def _process_request_file(self, path, writer: ResponseWriter):
        stem = path.name[: -len(".json")]
        try:
            content = codec.read_text(path)
            self.log.log(VERBOSE, "Read request content: %s", content[:100] + ("..." if len(content) > 100 else ""))
            request = codec.decode_request(content)
            rid = request.get("id")
            self.log.debug("Request command: %s, ID: %s", request.get("command"), rid)
            if rid is not None and not is_valid_id(rid):
                raise ParseError(f"Invalid request id: {rid!r}")
            response = self.executor.execute(request)
        except Exception as e:
            self.log.error("Error processing request file %s: %s", path.name, e)
            response = build_response(stem, "error", message=f"Failed to process request: {e}")
        writer.write_response(response, fallback_id=stem)
