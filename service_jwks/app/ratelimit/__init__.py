"""
Rate limiting package.

Holds the token bucket that bounds how often unknown key IDs may force a
refresh of remote JWK Sets.
"""
