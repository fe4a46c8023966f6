"""countrytv: playlist health checks and auto-updates for the CountryTV24 player."""
__version__ = "0.3.0"
