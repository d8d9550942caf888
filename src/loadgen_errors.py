class LoadgenError(Exception):
    """Base class for load generator errors."""


class ConfigError(LoadgenError):
    """Raised at startup when a configuration value is invalid."""

    def __init__(self, name, value, reason):
        super().__init__(f"Invalid {name}={value!r}: {reason}")
        self.name = name
        self.value = value


class CycleError(LoadgenError):
    """
    A single request cycle failed. Always transient: the worker abandons
    the cycle and starts a new one.
    """
    event_type = "CYCLE_ERROR"

    def __init__(self, worker_id, cause):
        super().__init__(f"worker {worker_id}: {cause}")
        self.worker_id = worker_id
        self.cause = cause


class ConnectError(CycleError):
    event_type = "CONNECT_ERROR"


class WriteError(CycleError):
    event_type = "WRITE_ERROR"


class ReadError(CycleError):
    event_type = "READ_ERROR"
