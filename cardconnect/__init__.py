"""CardConnect - business card scanning, enrichment and cloud sync."""

__version__ = "0.1.0"
