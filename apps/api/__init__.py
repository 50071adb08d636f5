"""E-ticket HTTP API."""
