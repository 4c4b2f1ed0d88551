"""Outbound fetch layer for the event discovery scrapers."""
