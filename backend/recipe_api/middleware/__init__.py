# Middleware package init
"""
RecipeApp API - Cross-cutting Middleware
=========================================

What:  Request correlation and access logging applied to every request.

Full middleware chain (outermost first, installed by recipe_api.main):
    Request → [Request ID] → [Logging] → [HTTPS redirection]
            → [Authentication] → [Authorization] → Route handler

    The security stages live in recipe_api.auth.middleware; this package
    holds the observability stages that wrap them.
"""
