from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import authenticate_user, create_access_token
from ..database import get_db
from ..schemas import LoginRequest, Token, UserOut

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=Token)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, body.email, body.password)
    token = create_access_token(data={"sub": user.email, "id": user.id, "role": user.role})
    return {"token": token, "token_type": "bearer", "user": UserOut.model_validate(user)}
