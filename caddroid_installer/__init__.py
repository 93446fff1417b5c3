"""CAD-Droid mobile development setup for Termux.

Core design goals:
- Ordered step registry; registration order is execution order
- A failing step never aborts the run
- Live progress for long-running commands
- Fail-closed arithmetic and validation of every numeric knob
- JSON-lines event log plus a human-readable log
"""

__version__ = "2.0.0"

__all__ = ["__version__"]
