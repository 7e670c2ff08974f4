from taskloop.core.interfaces.interrupt import InterruptSignalProtocol
from taskloop.core.interfaces.reasoner import ReasonerProtocol
from taskloop.core.interfaces.tools import ToolExecutorProtocol, ToolProtocol

__all__ = [
    "InterruptSignalProtocol",
    "ReasonerProtocol",
    "ToolExecutorProtocol",
    "ToolProtocol",
]
