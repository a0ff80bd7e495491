"""Main entry point for the seat reservation service."""

from seat_reservation.main import app


def main():
    """Main function for CLI entry point."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)


if __name__ == "__main__":
    main()
