"""Core infrastructure: context, logging, errors, cache, pagination."""
