"""
Canonical entry point for airmon_core package.

This package contains domain models, application services, and configuration.
It does not include the HTTP surface or storage adapters.
"""

import sys

from airmon_core.config.environments import get_settings


def main() -> None:
    """Main entry point for airmon_core package."""
    print("airmon_core - Domain and application layer package")
    print("This package is not intended to be run directly.")
    print("Use the airmon_server package (airmon-server api) instead.")

    # Show current configuration
    try:
        config = get_settings()
        print("\nCurrent configuration:")
        print(f"Environment: {config.ENVIRONMENT}")
        print(f"Database: {config.DATABASE_URL}")
        print(f"API: {config.API_HOST}:{config.API_PORT}")
        print(f"Display timezone: {config.DISPLAY_TIMEZONE}")
        print(f"Live window: {config.LIVE_WINDOW_SEC}s in {config.LIVE_BUCKET_SEC}s buckets")
    except Exception as e:
        print(f"Could not load configuration: {e}")

    sys.exit(0)


if __name__ == "__main__":
    main()
