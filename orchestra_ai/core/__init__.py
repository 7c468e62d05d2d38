"""Ambient infrastructure: settings, logging, monitoring and database helpers."""
