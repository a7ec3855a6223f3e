from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from jose import JWTError, jwt
import bcrypt
from sqlmodel import Session, select

from ..config import ACCESS_TOKEN_EXPIRE_MINUTES, SECRET_KEY
from ..database import get_db
from ..errors import Unauthenticated
from ..models import User
from ..schemas.user import AuthResponse, TokenData, User as UserSchema, UserCreate

router = APIRouter()
logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_COOKIE = "token"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    hashed_bytes = hashed_password.encode("utf-8") if isinstance(hashed_password, str) else hashed_password
    return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_bytes)


def get_password_hash(password: str) -> str:
    password_bytes = password.encode("utf-8")[:72]  # bcrypt only uses the first 72 bytes
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def _find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.exec(select(User).where(User.email == email)).first()


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = _find_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _get_token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return request.cookies.get(TOKEN_COOKIE)


def _decode_token(token: str) -> Optional[TokenData]:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    email = payload.get("sub")
    if not email:
        return None
    return TokenData(email=email)


def _user_from_request(request: Request, db: Session) -> Optional[User]:
    token = _get_token_from_request(request)
    if not token:
        return None
    token_data = _decode_token(token)
    if not token_data or not token_data.email:
        return None
    return _find_user_by_email(db, token_data.email)


def resolve_caller(request: Request, db: Session = Depends(get_db)) -> Optional[str]:
    """Authenticated user id, or None when the request carries no valid session.

    The task service decides what an anonymous caller may do.
    """
    user = _user_from_request(request, db)
    return str(user.id) if user else None


def authenticated_caller(caller_id: Optional[str] = Depends(resolve_caller)) -> str:
    """Reject anonymous requests before FastAPI validates the request body.

    Dependencies run ahead of body field validation, so a malformed payload
    from an anonymous caller is answered with 401, not 422.
    """
    if not caller_id:
        raise Unauthenticated()
    return caller_id


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user = _user_from_request(request, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def _issue_session(response: Response, user: User) -> dict:
    access_token = create_access_token(data={"sub": user.email})
    response.set_cookie(
        key=TOKEN_COOKIE,
        value=access_token,
        httponly=True,
        secure=False,  # Set to True in production with HTTPS
        samesite="lax",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return {"access_token": access_token, "token_type": "bearer", "user": user}


@router.post("/signup", response_model=AuthResponse)
def signup(user: UserCreate, response: Response, db: Session = Depends(get_db)):
    """Create a new user account and start a session."""
    if _find_user_by_email(db, user.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    db_user = User(email=user.email, hashed_password=get_password_hash(user.password))
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("User %s signed up", db_user.id)
    return _issue_session(response, db_user)


@router.post("/signin", response_model=AuthResponse)
def signin(user: UserCreate, response: Response, db: Session = Depends(get_db)):
    db_user = authenticate_user(db, user.email, user.password)
    if not db_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    return _issue_session(response, db_user)


@router.post("/signout")
def signout(response: Response):
    response.delete_cookie(key=TOKEN_COOKIE)
    return {"success": True}


@router.get("/session")
def get_session(request: Request, db: Session = Depends(get_db)):
    """Current session, or nulls when there is none."""
    user = _user_from_request(request, db)
    if user is None:
        return {"session": None, "user": None}

    token = _get_token_from_request(request)
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    return {
        "session": {
            "id": token,
            "expiresAt": datetime.fromtimestamp(payload["exp"], timezone.utc).isoformat(),
            "userId": str(user.id),
        },
        "user": {
            "id": str(user.id),
            "email": user.email,
            "createdAt": user.created_at.isoformat(),
            "updatedAt": user.updated_at.isoformat(),
        },
    }


@router.get("/me", response_model=UserSchema)
def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user
