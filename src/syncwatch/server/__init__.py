"""Server module - Reference implementation of the sync job endpoints."""
