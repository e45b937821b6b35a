"""Bridge API for external script connectivity.

Provides a JSON-over-TCP server that exposes the SINGULARIS PRIME
language tools, quantum mocks and assistant as request/response actions,
plus a synchronous client for scripts.
"""
