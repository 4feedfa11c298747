"""
Application layer for the exits bounded context.

Use cases coordinate the exit coordinator and map domain state to DTOs.
No framework or infrastructure imports allowed.
"""
