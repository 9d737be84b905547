"""
auth — Session identity for incoming requests.

Provides:
  • HMAC-signed session token creation & verification
  • ``resolve_user_id`` / ``get_current_user_id`` FastAPI dependencies
"""
