from fastapi import APIRouter

from ourhaus.api.v1.endpoints import auth, homes, households, invitations, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(households.router, prefix="/households", tags=["households"])
api_router.include_router(invitations.router, prefix="/invitations", tags=["invitations"])
api_router.include_router(homes.router, prefix="/homes", tags=["homes"])
