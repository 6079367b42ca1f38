"""Domain, application services and configuration for the facility air monitor."""
