"""Adapters for the exits bounded context."""
