"""This package provides the reasoning/acting loop that drives agent invocations.

The loop streams the model, executes requested tools, summarizes when the iteration budget runs out, and dispatches
every phase boundary to the agent's hooks.
"""

from . import event_loop

__all__ = ["event_loop"]
