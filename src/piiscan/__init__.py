"""piiscan — find personally identifiable information in source trees."""

__version__ = "0.1.0"
