"""Seat reservation service: seat allocation and allowance accounting."""

__version__ = "1.0.0"
