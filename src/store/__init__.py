"""Session persistence layer.

This module persists import sessions and items as JSON metadata.
It powers session inspection and retries for the SDK and CLI.
"""
