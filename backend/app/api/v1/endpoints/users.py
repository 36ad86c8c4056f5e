from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from backend.app.api.deps import client_ip
from backend.app.core.database import get_db
from backend.app.models.user import RoleEnum, User
from backend.app.schemas.user import UserCreate, UserOut, UserUpdate
from backend.app.schemas.validation import validated_body
from backend.app.services.audit import log_action

router = APIRouter()


@router.get("", response_model=list[UserOut])
def list_users(
    role: RoleEnum | None = Query(None),
    active: bool | None = Query(None),
    db: Session = Depends(get_db),
) -> list[User]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if active is not None:
        query = query.filter(User.is_active.is_(active))
    return query.order_by(User.first_name, User.last_name).all()


@router.get("/engineers", response_model=list[UserOut])
def list_engineers(db: Session = Depends(get_db)) -> list[User]:
    """Active field engineers, for the "assigned engineer" picker."""
    return (
        db.query(User)
        .filter(User.role == RoleEnum.FIELD_ENGINEER, User.is_active.is_(True))
        .order_by(User.first_name, User.last_name)
        .all()
    )


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    request: Request,
    payload: UserCreate = Depends(validated_body(UserCreate)),
    db: Session = Depends(get_db),
) -> User:
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user with this email already exists",
        )
    user = User(**payload.model_dump())
    db.add(user)
    db.flush()
    log_action(
        db,
        action="USER_CREATED",
        resource_type="users",
        resource_id=str(user.id),
        ip_address=client_ip(request),
        changes={"email": user.email, "role": user.role.value},
    )
    db.commit()
    db.refresh(user)
    return user


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: UUID,
    request: Request,
    payload: UserUpdate = Depends(validated_body(UserUpdate)),
    db: Session = Depends(get_db),
) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    for field, value in changes.items():
        setattr(user, field, value)
    log_action(
        db,
        action="USER_UPDATED",
        resource_type="users",
        resource_id=str(user.id),
        ip_address=client_ip(request),
        changes={k: str(v) for k, v in changes.items()},
    )
    db.commit()
    db.refresh(user)
    return user
