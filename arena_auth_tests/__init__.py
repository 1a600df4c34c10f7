"""
Tests for the arena_auth service: hashing, tokens, validation, rate limiting
and the HTTP endpoints.
"""
