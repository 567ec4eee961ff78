"""schemebridge — authenticated loopback bridge for a host application's internal URL scheme."""

__version__ = "0.1.0"
