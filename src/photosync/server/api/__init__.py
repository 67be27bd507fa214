"""API routers for the PhotoSync server."""
