"""Utility modules for the seat reservation service."""
