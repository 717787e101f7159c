"""
Shared utilities for logging.
"""
