# Middleware package init
"""
Think Nest Backend — Middleware Package
========================================

Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    - Rate Limit first: abusive clients are rejected before any work
    - Request ID before logging so every access line carries the id
    - CORS innermost, next to the router, answering preflights
"""
