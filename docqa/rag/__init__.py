"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document text extraction
- Fixed-size chunking
- Embedding index build, persistence and loading
- Cosine-similarity retrieval
- Grounded prompt assembly
"""
