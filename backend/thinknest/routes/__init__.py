# Routes package init
"""
Think Nest Backend — API Routes Package
========================================

Route Inventory:
    - auth.py:    /api/auth/*   (signup, login, refresh, logout, profile,
                                 password reset and verified change)
    - notes.py:   /api/notes/*  (CRUD, bulk delete, pin/archive, stats)
    - health.py:  GET /health

Routes stay THIN: read the request, call a service, wrap the result in the
{success, message, data} envelope, set cookies/headers. Business rules live
in thinknest.services.
"""
