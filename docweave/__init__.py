"""Static documentation for Python packages, including compiled extensions."""

__version__ = "0.1.0"
