"""Main entry point for the clinic booking service."""

import logging
import sys

from clinic_booking.config import get_settings


def setup_logging():
    """Configure logging based on settings."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def main():
    """Main entry point - runs CLI."""
    setup_logging()

    from clinic_booking.cli.commands import app

    app()


if __name__ == "__main__":
    main()
