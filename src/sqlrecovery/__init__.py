"""Azure SQL point-in-time and dropped-database recovery runner."""

__version__ = "1.0.0"
