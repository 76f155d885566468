from fastapi import APIRouter, Depends, status

from ourhaus.api.deps import get_identity_service
from ourhaus.core.auth import CurrentUser, get_current_user
from ourhaus.schemas.auth import TokenResponse, UserLogin, UserResponse, UserSignup
from ourhaus.services.identity_service import AuthSession, IdentityService

router = APIRouter()


def _to_token_response(session: AuthSession) -> TokenResponse:
    return TokenResponse(
        access_token=session.access_token,
        token_type=session.token_type,
        user=UserResponse(id=session.user_id, email=session.email, display_name=session.display_name),
    )


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: UserSignup,
    identity: IdentityService = Depends(get_identity_service),
):
    """Register a new user and sign them in. Their profile is created on sign-in."""
    session = await identity.sign_up(user_data.email, user_data.password, user_data.display_name)
    return _to_token_response(session)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    identity: IdentityService = Depends(get_identity_service),
):
    """Login with email and password"""
    session = await identity.sign_in(credentials.email, credentials.password)
    return _to_token_response(session)


@router.post("/logout")
async def logout(
    current_user: CurrentUser = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    """Logout. Every token issued to the user so far stops working."""
    await identity.sign_out(current_user.user_id)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: CurrentUser = Depends(get_current_user)):
    """Get current user information"""
    return UserResponse(
        id=current_user.user_id,
        email=current_user.email,
        display_name=current_user.display_name,
    )
