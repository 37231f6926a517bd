"""Pydantic models shared by the crawler services and the HTTP surface."""
