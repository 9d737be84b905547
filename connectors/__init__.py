"""
connectors — Spotify OAuth integration.

Handles:
  • OAuth2 auth-URL generation and ``state`` tokens
  • Callback handling (code → token exchange)
  • Per-user token storage and connection status
  • Fernet encryption of tokens at rest
"""
