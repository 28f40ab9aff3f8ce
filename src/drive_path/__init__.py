"""Path-addressed GET/PUT/DELETE over Google Drive."""

__version__ = "0.1.0"
