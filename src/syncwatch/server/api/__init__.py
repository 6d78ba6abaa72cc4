"""API routes for the syncwatch server."""
