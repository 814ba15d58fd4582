"""
Services package.

Persistence engines, authentication, the pizza factory client, metrics,
log shipping and chaos switches.
"""
