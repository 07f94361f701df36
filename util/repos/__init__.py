"""File storage implementations."""
