"""StartupVista - matchmaking API for startups, investors and consultants."""

__version__ = "1.0.0"
