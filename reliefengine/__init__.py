"""Relief engine - matching and state transitions for an emergency-aid portal."""

__version__ = "0.1.0"
