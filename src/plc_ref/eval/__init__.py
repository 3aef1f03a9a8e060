"""Evaluator helper modules for the PLC interpreter."""

__all__ = [
    "blocks",
    "chains",
    "control",
    "expr",
    "fn",
    "helpers",
    "let",
    "literals",
    "loops",
    "mutation",
    "program",
]
