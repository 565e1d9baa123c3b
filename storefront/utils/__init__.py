"""Utility functions for the application."""
from .http import fetch_with_retry
from .llm import build_gateway_client, create_chat_completion_with_timeout, run_db_operation_with_timeout
from .text import extract_json, slugify

__all__ = [
    "fetch_with_retry",
    "build_gateway_client",
    "create_chat_completion_with_timeout",
    "run_db_operation_with_timeout",
    "extract_json",
    "slugify",
]
