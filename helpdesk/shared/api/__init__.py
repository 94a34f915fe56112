"""
Shared API Layer
================

Middleware, exception handlers and base response models.
"""
