"""Tool executors.

Tool executors decide how the tool calls of one reasoning message are run. Calls are executed one at a time, in the
order the model requested them, so that hooks observe a deterministic sequence of acting phases and a stop request
leaves a well-defined set of pending calls.
"""

from . import sequential
from ._executor import ToolExecutor
from .sequential import SequentialToolExecutor

__all__ = [
    "SequentialToolExecutor",
    "ToolExecutor",
    "sequential",
]
