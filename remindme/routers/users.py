from fastapi import APIRouter
from starlette import status
from remindme.dependencies import db_dependency, token_user_dependency, user_dependency
from remindme.schemas.user import UserResponse
from remindme.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse, status_code=status.HTTP_200_OK)
def get_me(db: db_dependency, user: user_dependency):
    return UserService(db).get_user(user.get("id"))


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(db: db_dependency, user: user_dependency):
    """Schedule the account for deletion; it is purged after the grace period."""
    UserService(db).delete_account(user.get("id"))


@router.post("/me/restore", response_model=UserResponse, status_code=status.HTTP_200_OK)
def restore_account(db: db_dependency, user: token_user_dependency):
    return UserService(db).restore_account(user.get("id"))
