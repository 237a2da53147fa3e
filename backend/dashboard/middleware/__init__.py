# Middleware package init
"""
Dashboard Backend — Middleware Package
========================================

Middleware Chain:
    Request → [Request ID] → [Upload Rate Limit] → [Access Log] → [CORS] → Route

Request ID runs first so that 429 bodies and access log lines carry the
correlation id.
"""
