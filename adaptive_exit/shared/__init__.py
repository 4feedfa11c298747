"""
Shared module package.

Cross-cutting concerns used by every layer:
- Error handling and mapping
- Security middleware
- Rate limiting
- Logging configuration
"""
