# plugins/twitter/auth/__init__.py
"""
Twitter Authorization
=====================

The OAuth 1.0a connector that runs the provider side of the Twitter
handshake. It implements the ServiceConnector interface defined in the
plugins module.
"""

from .oauth import TwitterOAuthConnector

__all__ = ['TwitterOAuthConnector']
