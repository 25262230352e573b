"""IDN Cards — Indonesian card catalog scraper."""

__version__ = "0.1.0"
