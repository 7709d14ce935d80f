from .errors import (
    BridgeError,
    ExecutionError,
    FolderSetupError,
    ParseError,
    RemoteExecutionError,
    ResponseWriteError,
    ServiceNotRunningError,
    UnknownCommandError,
)
from .executor import CommandExecutor
from .folders import BridgeLayout, ensure_communication_layout
from .logsink import Severity, SinkHandler
from .service import BridgeService, State
from .writer import ResponseWriter

__version__ = "1.0.0"
