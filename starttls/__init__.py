from .coroutine import UpgradeTls
from .engine import drive, drive_async
from .errors import (
    ConfigError,
    CoroutineFinishedError,
    MisuseError,
    NegotiationError,
    StartTlsError,
    UnexpectedResultError,
)
from .protocol import (
    Failure,
    FailureKind,
    IoFailure,
    IoRequest,
    IoResult,
    Outcome,
    Phase,
    ReadRequest,
    ReadResult,
    StartTlsProtocol,
    Success,
    UpgradeConfig,
    UpgradeState,
    WriteRequest,
    WriteResult,
)
from .transport import (
    AsyncScriptedRuntime,
    IAsyncRuntime,
    IRuntime,
    ScriptedRuntime,
    SocketRuntime,
    StreamRuntime,
)

__all__ = [
    "UpgradeTls",
    "drive",
    "drive_async",
    "ConfigError",
    "CoroutineFinishedError",
    "MisuseError",
    "NegotiationError",
    "StartTlsError",
    "UnexpectedResultError",
    "Failure",
    "FailureKind",
    "IoFailure",
    "IoRequest",
    "IoResult",
    "Outcome",
    "Phase",
    "ReadRequest",
    "ReadResult",
    "StartTlsProtocol",
    "Success",
    "UpgradeConfig",
    "UpgradeState",
    "WriteRequest",
    "WriteResult",
    "AsyncScriptedRuntime",
    "IAsyncRuntime",
    "IRuntime",
    "ScriptedRuntime",
    "SocketRuntime",
    "StreamRuntime",
]

__version__ = "0.1.0"
