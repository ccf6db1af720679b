"""Event processing and notification fan-out worker for the service-shop platform."""

__version__ = "0.1.0"
