"""Grounded prompt assembly."""
from typing import Sequence

INSTRUCTION = "Answer using ONLY the context."


def build_prompt(context_chunks: Sequence[str], question: str) -> str:
    """Single-turn prompt asking for an answer drawn only from the chunks."""
    context = "\n\n".join(context_chunks)
    return f"""{INSTRUCTION}

Context:
{context}

Question: {question}

Answer:"""
