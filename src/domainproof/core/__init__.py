"""Core enums, state machines, errors and helpers shared by every layer."""
