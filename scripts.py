#!/usr/bin/env python3
"""Development scripts for the seat reservation service."""

import subprocess
import sys


def start():
    """Start the development server with reload."""
    subprocess.run([
        "uvicorn",
        "seat_reservation.main:app",
        "--host", "0.0.0.0",
        "--port", "8080",
        "--reload"
    ])


def worker():
    """Start a Celery worker for notification tasks."""
    subprocess.run([
        "celery",
        "-A", "seat_reservation.tasks.celery_app:celery_app",
        "worker",
        "--loglevel", "info"
    ])


def test():
    """Run the test suite."""
    sys.exit(subprocess.run(["pytest", "tests/"]).returncode)


def lint():
    """Run formatting check and type checking."""
    subprocess.run(["black", "--check", "seat_reservation/", "tests/"])
    subprocess.run(["mypy", "seat_reservation/"])


def format_code():
    """Format code with black."""
    subprocess.run(["black", "seat_reservation/", "tests/"])


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts.py <command>")
        print("Commands: start, worker, test, lint, format-code")
        sys.exit(1)

    command = sys.argv[1].replace("-", "_")
    if hasattr(sys.modules[__name__], command):
        getattr(sys.modules[__name__], command)()
    else:
        print(f"Unknown command: {sys.argv[1]}")
        sys.exit(1)
