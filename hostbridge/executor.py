import ast
import builtins
import logging
from typing import Any, Callable, Dict

from . import codec
from .errors import ExecutionError, UnknownCommandError
from .writer import build_response

logger = logging.getLogger("hostbridge.executor")

_SNIPPET_NAME = "__snippet__"
_SNIPPET_TEMPLATE = f"def {_SNIPPET_NAME}():\n    pass\n"


def _preview(text: str, limit: int = 100) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def compile_snippet(script: str, filename: str = "<snippet>"):
    """Compile ``script`` as the body of a zero-argument function.

    The snippet is parsed on its own first so that string literals and line
    numbers are preserved, then grafted into a function definition; this lets
    a bare ``return`` at the top level of the snippet produce the result.
    """
    tree = ast.parse(script, filename=filename, mode="exec")
    module = ast.parse(_SNIPPET_TEMPLATE, filename=filename, mode="exec")
    if tree.body:
        module.body[0].body = tree.body
    ast.fix_missing_locations(module)
    return compile(module, filename, "exec")


def returnjson(data) -> str:
    try:
        return codec.encode(data, indent=None)
    except (TypeError, ValueError) as e:
        return codec.encode({"error": f"Failed to stringify result: {e}"}, indent=None)


def _jsonable(value):
    try:
        codec.encode(value, indent=None)
    except (TypeError, ValueError):
        return str(value)
    return value


class CommandExecutor:
    def __init__(self, host: Any = None, log: logging.Logger = logger):
        # スニペットから見えるのは host（自動化API）とヘルパーのみ
        self.host = host
        self.log = log
        self._handlers: Dict[str, Callable[[dict], Any]] = {
            "ping": self._ping,
            "execute": self._execute,
        }

    def execute(self, request: dict) -> dict:
        rid = request.get("id")
        command = request.get("command")
        self.log.info("Processing request: %s", command)
        try:
            handler = self._handlers.get(command) if isinstance(command, str) else None
            if handler is None:
                raise UnknownCommandError(command)
            result = handler(request)
        except UnknownCommandError as e:
            self.log.warning("%s", e)
            return build_response(rid, "error", message=str(e))
        except ExecutionError as e:
            self.log.warning("Script execution error: %s", e)
            return build_response(rid, "error", message=str(e))
        except Exception as e:
            self.log.exception("Command %r failed", command)
            return build_response(rid, "error", message=f"Failed to process request: {e}")
        return build_response(rid, "ok", result=result)

    def _ping(self, request: dict):
        self.log.debug("Ping received")
        return "pong"

    def _namespace(self) -> dict:
        snippet_log = logging.getLogger(self.log.name + ".snippet")
        return {
            "__builtins__": builtins,
            "__name__": "__hostbridge_snippet__",
            "host": self.host,
            "returnjson": returnjson,
            "log": snippet_log.info,
        }

    def _execute(self, request: dict):
        script = request.get("script")
        if script is None:
            raise ExecutionError("Missing script for execute command")
        if not isinstance(script, str):
            raise ExecutionError(f"Script must be a string, got: {type(script).__name__}")
        self.log.debug("Executing script: %s", _preview(script))
        filename = f"<request {request.get('id') or '?'}>"
        namespace = self._namespace()
        try:
            code = compile_snippet(script, filename)
            exec(code, namespace)
            result = namespace[_SNIPPET_NAME]()
        except (Exception, SystemExit) as e:
            raise ExecutionError(f"{type(e).__name__}: {e}") from e
        self.log.debug("result: %r", result)
        self.log.info("Executed script successfully with result type: %s", type(result).__name__)
        return _jsonable(result)
