# Routes package init
"""
RecipeApp API - Routes Package
===============================

Route Inventory:
    - health.py:  GET  /health                (anonymous)
    - account.py: POST /api/auth/register     (anonymous)
                  POST /api/auth/login        (anonymous)
                  GET  /api/auth/me           (authenticated)
                  GET  /api/auth/users        (AdminOnly)

Routes stay thin: identity rules live in recipe_api.identity, token
issuance in recipe_api.services, protection in recipe_api.auth.
"""
