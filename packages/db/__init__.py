"""Database models and utilities."""

from .models import ETicketTable

__all__ = ["ETicketTable"]
