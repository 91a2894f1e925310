# app/api/deps.py
from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.errors import AuthenticationError, CartError
from app.services.auth_client import AuthClient
from app.services.cart_service import CartService
from app.services.lock_service import LockService
from app.services.product_client import ProductClient
from app.utils.settings import CartConfig

bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_product_client() -> ProductClient:
    return ProductClient()


@lru_cache
def get_lock_service() -> LockService:
    return LockService()


@lru_cache
def get_auth_client() -> AuthClient:
    return AuthClient()


@lru_cache
def get_cart_config() -> CartConfig:
    return CartConfig.from_env()


def get_current_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    auth_client: AuthClient = Depends(get_auth_client),
) -> str:
    # cookie first, then Authorization header
    token = request.cookies.get("token") or (credentials.credentials if credentials else None)
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token provided")

    try:
        user = auth_client.resolve_user(token)
        user_id = user.get("_id") or user.get("id")
        if not user_id:
            raise AuthenticationError("Not authorized, token failed")
    except CartError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return str(user_id)


def get_cart_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
    lock_service: LockService = Depends(get_lock_service),
    config: CartConfig = Depends(get_cart_config),
) -> CartService:
    return CartService(
        db=db,
        product_client=product_client,
        lock_service=lock_service,
        config=config,
    )
