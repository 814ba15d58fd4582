"""
API routers and their endpoint catalogues (served at /api/docs).
"""

from pizza_service.routes import auth, franchise, order

ENDPOINTS = [*auth.ENDPOINTS, *order.ENDPOINTS, *franchise.ENDPOINTS]

routers = [auth.router, order.router, franchise.router]

__all__ = ["ENDPOINTS", "routers"]
