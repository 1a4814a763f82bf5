"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Logging setup
- Circuit breaker for flaky external services
"""
