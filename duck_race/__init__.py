"""Live duck race: a pre-decided race simulation streamed to observers."""

__version__ = "0.1.0"
