"""Schema-described tools served over a stdio JSON-RPC bridge."""

__version__ = "1.0.0"
