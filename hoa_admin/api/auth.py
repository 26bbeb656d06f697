import logging
from typing import Iterable, List, Sequence

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    get_password_hash,
    load_user,
    require_roles,
    verify_password,
)
from ..config import settings
from ..constants import ROLE_PRIORITY
from ..models.models import Role, User
from ..schemas.schemas import RoleRead, Token, TokenRefreshRequest, UserCreate, UserRead
from ..services.audit import audit_log

logger = logging.getLogger(__name__)

router = APIRouter()


def _sort_roles_by_priority(roles: Sequence[Role]) -> List[Role]:
    return sorted(roles, key=lambda role: ROLE_PRIORITY.get(role.name, 0), reverse=True)


def _apply_roles_to_user(user: User, roles: Iterable[Role]) -> None:
    unique_roles: dict[int, Role] = {}
    for role in roles:
        unique_roles[role.id] = role
    user.roles = _sort_roles_by_priority(list(unique_roles.values()))


def _build_token_response(user: User) -> Token:
    primary_role = user.highest_priority_role
    primary_role_name = primary_role.name if primary_role else None
    role_names = user.role_names

    access_payload = {
        "sub": str(user.id),
        "roles": role_names,
        "primary_role": primary_role_name,
        "type": "access",
    }
    return Token(
        access_token=create_access_token(access_payload),
        refresh_token=create_refresh_token(str(user.id)),
        token_type="bearer",
        roles=role_names,
        primary_role=primary_role_name,
        expires_in=settings.access_token_expire_minutes * 60,
        refresh_expires_in=settings.refresh_token_expire_minutes * 60,
    )


@router.get("/roles", response_model=List[RoleRead])
def list_roles(db: Session = Depends(get_db), _: User = Depends(require_roles("ADMIN"))) -> List[Role]:
    return db.query(Role).order_by(Role.name.asc()).all()


@router.post("/register", response_model=UserRead)
def register_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_roles("ADMIN")),
):
    existing = db.query(User).filter(User.email == payload.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    requested_role_ids = set(payload.role_ids)
    roles = db.query(Role).filter(Role.id.in_(sorted(requested_role_ids))).all()
    if len(roles) != len(requested_role_ids):
        raise HTTPException(status_code=400, detail="One or more roles not found")

    user = User(
        email=payload.email,
        full_name=payload.full_name,
        hashed_password=get_password_hash(payload.password),
    )
    _apply_roles_to_user(user, roles)
    db.add(user)
    db.flush()

    audit_log(
        db_session=db,
        actor_user_id=actor.id,
        action="user.register",
        target_entity_type="User",
        target_entity_id=str(user.id),
        after={"email": user.email, "roles": user.role_names},
        commit=False,
    )
    db.commit()
    logger.info("User %s registered by %s", user.id, actor.id)
    return load_user(db, user.id)


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.email == form_data.username).first()
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is archived or inactive.")

    return _build_token_response(user)


@router.post("/refresh", response_model=Token)
def refresh_token(
    payload: TokenRefreshRequest,
    db: Session = Depends(get_db),
):
    credentials_exception = HTTPException(status_code=401, detail="Invalid refresh token")
    try:
        decoded = decode_token(payload.refresh_token)
    except JWTError as exc:
        raise credentials_exception from exc

    if decoded.get("type") != "refresh":
        raise credentials_exception

    user_id = decoded.get("sub")
    if not user_id:
        raise credentials_exception

    user = load_user(db, int(user_id))
    if not user or not user.is_active:
        raise credentials_exception

    return _build_token_response(user)


@router.get("/me", response_model=UserRead)
def read_current_user(user: User = Depends(get_current_user)) -> User:
    return user


@router.post("/logout", status_code=204)
def logout(_: User = Depends(get_current_user)) -> Response:
    # Tokens are stateless; clients drop them.
    return Response(status_code=204)
