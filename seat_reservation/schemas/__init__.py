"""Pydantic schemas for the seat reservation API."""
