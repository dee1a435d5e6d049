"""CI chat bot bootstrap: build cluster discovery and restart-on-rotation supervision."""

__version__ = "0.1.0"
