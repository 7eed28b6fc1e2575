"""
RecipeApp API - Application Package Initializer
================================================

What: Marks the `recipe_api` directory as a Python package.
Who:  Used by Python's import system and explicitly by Alembic, pytest and uvicorn.

Architecture Note:
    The package is the composition root of the RecipeApp web API:

    ┌─────────────────────────────────────┐
    │     Routes (health, account)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Middleware (HTTPS, authn, authz)   │  ← every request, fixed order
    ├─────────────────────────────────────┤
    │  Services (tokens, identity, scope) │  ← request-scoped collaborators
    ├─────────────────────────────────────┤
    │   Models (users, roles)             │  ← SQLAlchemy ORM
    ├─────────────────────────────────────┤
    │   Database (async engine/sessions)  │  ← persistence
    └─────────────────────────────────────┘

    `recipe_api.main` wires all layers together once per process.
"""

__version__ = "1.0.0"
