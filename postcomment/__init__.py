"""Posts and threaded comments API."""
