"""Counter store adapters.

The rate limiter needs an atomic increment with a time-to-live. Production
uses Redis so every worker shares one counter per client; the in-memory
store serves development and tests.
"""
