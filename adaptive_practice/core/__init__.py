"""Core application infrastructure: settings, logging, errors, cache client and locks."""
