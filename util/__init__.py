"""Shared utilities: file storage and upload validation."""
