"""
Phoenix - API Models
====================
"""

from .base import APIResponse, HealthStatus


__all__ = ["APIResponse", "HealthStatus"]
