"""
Exits bounded context: domain layer.

This module contains all domain logic for option position exits:
- Candidate level collection (pivots, swings, round figures)
- Confluence scoring, clustering and target ladder assignment
- OI window tracking and majority-vote exit patterns
- Per-position exit state and target-hit resolution
"""
