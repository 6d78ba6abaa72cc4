"""syncwatch - observe a dashboard's background sync job."""

__version__ = "0.1.0"
