"""Evaluator helper modules for the StrictPHP runtime."""

__all__ = [
    "bind",
    "common",
    "control",
    "expr",
    "fn",
    "helpers",
    "include",
    "literals",
    "loops",
]
