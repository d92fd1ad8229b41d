"""Pydantic models for world-update payloads and graph records."""
