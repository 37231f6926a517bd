"""Crawling, caching, scheduling and search services."""
