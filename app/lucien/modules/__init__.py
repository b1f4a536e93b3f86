"""
Feature modules live under this package.

Each module owns its API blueprint and service logic, reusing the platform
primitives (session guard, rate limiting, ERP client, audit) from app.lucien.
"""
