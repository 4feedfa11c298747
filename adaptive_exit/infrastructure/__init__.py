"""
Infrastructure layer package.

Concrete adapters for the ports defined in the domain layer.
Redis market data reads live here.
"""
