"""
Middleware for the admin API.
"""
from monika_history.middleware.correlation import CorrelationIdMiddleware

__all__ = ["CorrelationIdMiddleware"]
