"""GPU resource management for a cluster device plugin."""

__version__ = "0.16.0"