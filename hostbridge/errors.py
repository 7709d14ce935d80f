class BridgeError(Exception):
    pass


class FolderSetupError(BridgeError):
    def __init__(self, path, cause=None):
        self.path = path
        self.cause = cause
        msg = f"Cannot create or access directory: {path}"
        if cause is not None:
            msg += f" ({cause})"
        super().__init__(msg)


class ParseError(BridgeError):
    pass


class ExecutionError(BridgeError):
    pass


class UnknownCommandError(BridgeError):
    def __init__(self, command):
        self.command = command
        super().__init__(f"Unknown command: {command}")


class ResponseWriteError(BridgeError):
    pass


# client side
class ServiceNotRunningError(BridgeError):
    pass


class RemoteExecutionError(BridgeError):
    def __init__(self, message, response=None):
        self.response = response
        super().__init__(message)
