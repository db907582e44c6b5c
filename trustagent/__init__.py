"""TrustAgent — terminal chat client for a tool-using agent backend."""

__version__ = "0.3.0"
