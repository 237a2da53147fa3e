# Routes package init
"""
Dashboard Backend — API Routes Package
========================================

Route Inventory:
    - users.py:   POST /api/users/upload, GET /api/users/{id}/profile,
                  GET /api/users, GET /api/users/{id}
    - health.py:  GET /health

Routes handle HTTP concerns only; business rules live in services.
"""
