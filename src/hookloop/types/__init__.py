"""Type definitions shared across the engine."""
