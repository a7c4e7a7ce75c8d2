from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from grievance.core import accounts
from grievance.core.db import get_db
from grievance.schemas.user import SignupRequest, LoginRequest, ProfileUpdate, UserResponse

router = APIRouter(prefix="/auth", tags=["Auth"])

@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def signup(request: SignupRequest, db: Session = Depends(get_db)):
    profile = request.model_dump(exclude={"email", "password", "display_name", "role"}, exclude_none=True)
    return accounts.signup(db, request.email, request.password, request.display_name, request.role, **profile)


@router.post("/login", response_model=UserResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Check credentials and record the login time. Session handling is left to the client.
    """
    return accounts.authenticate(db, request.email, request.password)


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return accounts.get_user(db, user_id)


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_profile(user_id: str, changes: ProfileUpdate, db: Session = Depends(get_db)):
    return accounts.update_profile(db, user_id, **changes.model_dump(exclude_unset=True))
