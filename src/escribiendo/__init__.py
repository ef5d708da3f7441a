"""escribiendo - Spanish writing and conversation practice backend."""

__version__ = "0.1.0"
