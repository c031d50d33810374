"""
API module for LinkDB server.

This module provides the external interface:
- LinkDbServicer: dict-in / dict-out request handling
- HTTP server (aiohttp) exposing the /data/* contract

Invariants:
    - Reads and writes go straight to the in-memory GraphStore
    - Only rejected adds are reported as validation failures

How to change safely:
    - Keep /data/add, /data/delete and /data/display backward compatible
    - Put new request handling in the servicer, not in HTTP handlers
"""

from .http_server import HttpServer, create_http_app
from .servicer import LinkDbServicer

__all__ = [
    "LinkDbServicer",
    "HttpServer",
    "create_http_app",
]
