"""
AdaptiveExit: adaptive exit and target-assignment engine for option positions.

Application package root. This is a modular monolith using
hexagonal architecture (ports & adapters) with domain-driven design.

Bounded contexts:
    - exits: Confluence target ladders, OI pattern monitoring, exit decisions.

Layers:
    - domain: Pure business logic, entities, ports (ABCs), errors.
    - application: Use cases, DTOs, orchestration.
    - infrastructure: Adapters (Redis market data) implementing domain ports.
    - interfaces: FastAPI routers, Pydantic schemas.
    - realtime: Background OI polling scheduler.
    - shared: Cross-cutting concerns (errors, security, logging).
"""
