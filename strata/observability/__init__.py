"""Observability - structured logging and timing helpers.

Submodules:
    logging: Structured JSON logging formatter, event and timing utilities
"""
