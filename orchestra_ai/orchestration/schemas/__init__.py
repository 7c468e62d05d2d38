"""Pydantic schemas shared across the orchestration runtime."""
