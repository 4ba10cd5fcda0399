"""
STARTTLS runtimes.

Execute the coroutine's I/O requests against concrete transports.
"""
from .interface import IRuntime, IAsyncRuntime
from .sockets import SocketRuntime
from .streams import StreamRuntime
from .scripted import ScriptedRuntime, AsyncScriptedRuntime

__all__ = [
    "IRuntime",
    "IAsyncRuntime",
    "SocketRuntime",
    "StreamRuntime",
    "ScriptedRuntime",
    "AsyncScriptedRuntime",
]
