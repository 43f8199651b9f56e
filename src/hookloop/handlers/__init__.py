"""Callback handlers receiving the events an invocation streams."""

from .callback_handler import CompositeCallbackHandler, PrintingCallbackHandler, null_callback_handler

__all__ = ["CompositeCallbackHandler", "null_callback_handler", "PrintingCallbackHandler"]
