"""RMA desk: return/repair case tracking with a serial service registry."""

__version__ = "0.1.0"
