# plugins/twitter/routes/__init__.py
"""
Twitter Routes
==============

FastAPI route definitions for the Twitter connection endpoints. They are
mounted under ``/api/auth/twitter`` in the main application.
"""

from .oauth_routes import TwitterOAuthRoutes

__all__ = ['TwitterOAuthRoutes']
