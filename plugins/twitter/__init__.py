# plugins/twitter/__init__.py
"""
Twitter Plugin Package
======================

This package connects an agent to a Twitter/X account with OAuth 1.0a.

Connector:
---------
- TwitterOAuthConnector: Request token, access token exchange and identity lookup via tweepy

Routes:
------
- TwitterOAuthRoutes: Connect, callback, status and disconnect endpoints

Both are registered with the plugin system when this package is imported.

Connection Flow:
--------------
1. The dashboard asks to connect and receives Twitter's authorization URL
2. The user authorizes the app on Twitter
3. Twitter redirects to the callback with the request token and verifier
4. The access token is exchanged, the account looked up and the credentials
   stored encrypted for the agent

Stored Credentials:
-----------------
apiKey, apiSecretKey, accessToken, accessTokenSecret, userId, username, name
"""

# Import Connector
from .auth import TwitterOAuthConnector

# Import Routes
from .routes import TwitterOAuthRoutes

# Register plugins
from plugins import register_connector, register_route_plugin

# Automatically register the plugins when this package is imported
register_connector(TwitterOAuthConnector)
register_route_plugin(TwitterOAuthRoutes)
