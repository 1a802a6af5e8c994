from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import AuthContext, required_auth
from conduit.schemas import LoginRequest, RegistrationRequest, UserResponse, UserUpdateRequest
from conduit.security import TokenService, get_token_service
from conduit.services import user_service

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/users/login", response_model=UserResponse)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    return UserResponse(user=await user_service.login(db, tokens, payload.user))


@router.post("/users", response_model=UserResponse)
async def register(
    payload: RegistrationRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    return UserResponse(user=await user_service.register(db, tokens, payload.user))


@router.get("/user", response_model=UserResponse)
async def get_current_user(
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    return UserResponse(user=await user_service.get_current_user(db, auth.user_id, auth.token))


@router.put("/user", response_model=UserResponse)
async def update_user(
    payload: UserUpdateRequest,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_user(db, auth.user_id, auth.token, payload.user)
    return UserResponse(user=user)
