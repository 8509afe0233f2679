"""Threaded comments."""
