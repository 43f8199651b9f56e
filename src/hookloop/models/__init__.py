"""Model contract consumed by the agent loop.

Concrete providers live outside this package; they implement `Model.stream` and translate their wire format into
Converse-style stream events.
"""

from . import model
from .model import Model

__all__ = ["model", "Model"]
