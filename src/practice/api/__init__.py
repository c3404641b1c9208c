"""
Practice API Package

REST endpoints for the practice manager, one router per domain.
"""

from .router import practice_router

__all__ = ["practice_router"]
