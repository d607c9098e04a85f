"""
Core package for shared utilities.

Holds configuration, structured logging and token verification used across
the API, services and database layers.
"""
