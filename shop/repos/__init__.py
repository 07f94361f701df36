"""Repository implementations for the shop domain."""
