"""
Services module - the identity and authorization core.

- credential_store:   durable (identity, provider) -> token record mapping
- session_verifier:   session proof -> identity
- authorization:      identity + required role -> user
- oauth_state:        one-time anti-forgery nonces for the consent round trip
- oauth_connector:    consent URL, code exchange, refresh
- token_manager:      valid access tokens with de-duplicated refresh
"""
