"""Data models shared across the application."""
