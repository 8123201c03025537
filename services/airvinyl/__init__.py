"""AirVinyl — stream a line-in source to AirPlay receivers."""

__version__ = "0.4.0"
