from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from eventreg.database import get_db
from eventreg.models.user import User
from eventreg.schemas.user import SignupOut, UserCreate, UserOut, UserUpdate
from eventreg.services import users as user_service
from eventreg.utils.auth import get_current_user, require_admin

router = APIRouter(prefix="/user", tags=["Users"])


@router.post("/create-user", response_model=SignupOut, status_code=status.HTTP_201_CREATED)
def create_user(body: UserCreate, db: Session = Depends(get_db)):
    return user_service.create_user(db, body)


@router.post("/create-admin", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_admin(body: UserCreate, db: Session = Depends(get_db), _admin=Depends(require_admin)):
    return user_service.create_admin(db, body)


@router.get("", response_model=list[UserOut])
def list_users(db: Session = Depends(get_db), _admin=Depends(require_admin)):
    return user_service.list_users(db)


@router.get("/profile", response_model=UserOut)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/profile", response_model=UserOut)
def update_profile(
    body: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.update_profile(db, current_user, body)


@router.delete("/delete-profile", status_code=status.HTTP_204_NO_CONTENT)
def delete_profile(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    user_service.delete_profile(db, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db), _user=Depends(get_current_user)):
    return user_service.get_user(db, user_id)
