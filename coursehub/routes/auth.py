import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.orm import Session

from coursehub.database import get_db
from coursehub.dependencies import get_notifier
from coursehub.email_utils import notify_safely
from coursehub.models import Role, User
from coursehub.schemas import UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

class LoginRequest(BaseModel):
    email: str
    password: str

class SignupRequest(BaseModel):
    name: str
    email: str
    password: str
    role: Role = Role.STUDENT

def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    return pwd_context.hash(password)

# --- SIGNUP ROUTE ---
@router.post("/signup", response_model=UserResponse, status_code=201)
def signup(user: SignupRequest, background_tasks: BackgroundTasks, db: Session = Depends(get_db),
           notifier=Depends(get_notifier)):
    existing_user = db.query(User).filter(User.email == user.email).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = User(
        name=user.name,
        email=user.email,
        password_hash=get_password_hash(user.password),
        role=user.role.value,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("New %s account %s", new_user.role, new_user.id)

    background_tasks.add_task(notify_safely, notifier, new_user.email, "welcome", {"name": new_user.name})
    return new_user

# --- LOGIN ROUTE ---
@router.post("/login")
def login(creds: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == creds.email).first()

    if not user or not verify_password(creds.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {
        "message": "Login successful",
        "role": user.role,
        "user_id": user.id,
        "name": user.name,
    }
