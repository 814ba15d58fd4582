"""
                Pizza Service

REST backend for a pizza-ordering platform: accounts, franchises and
stores, a shared menu, and order placement with fulfillment delegated
to an external pizza factory.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
