"""
Shared error handling package.

Translates exit engine errors into consistent API responses.
"""
