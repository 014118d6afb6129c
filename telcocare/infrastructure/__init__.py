"""Shared infrastructure: database engine and LLM clients."""
