"""API route handlers."""
from . import billing, plaid, webhooks

__all__ = ["billing", "plaid", "webhooks"]
