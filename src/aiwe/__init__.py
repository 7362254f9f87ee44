"""AIWE - action-plan execution engine for natural-language instructions."""

__version__ = "0.1.0"
