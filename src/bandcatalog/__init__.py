"""bandcatalog - setlists and a single song catalog per band."""

__version__ = "0.1.0"
