"""Website crawling, caching and live site search for guide websites."""

__version__ = "0.3.0"
