# Services package init
"""
RecipeApp API - Services Layer
===============================

Service Inventory:
    - scope.py:             AppServices (composition product), ServiceScope,
                            get_service_scope FastAPI dependency
    - jwt_token_service.py: JwtTokenService, issues bearer tokens (scoped)
"""
