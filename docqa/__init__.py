"""Question answering over a document with a local embedding index."""

__version__ = "0.1.0"
