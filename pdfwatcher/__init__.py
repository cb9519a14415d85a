"""PDFWatcher - Track documents published on an intranet page."""

__version__ = "0.1.0"
