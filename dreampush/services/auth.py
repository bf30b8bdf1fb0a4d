from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth as firebase_auth
from dreampush.db import get_db
from dreampush.models.user import User, UserRole
from sqlalchemy.orm import Session
from dreampush.utils.datetime import utc_now

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:

    token = credentials.credentials
    # Test tokens for development (ensure persistence so FK constraints pass)
    mock_map = {
        "mock-user-token": ("user-1", "Dreamer One", "dreamer@example.com", UserRole.user),
        "mock-admin-token": ("admin-1", "Admin One", "admin@example.com", UserRole.admin),
    }
    if token in mock_map:
        uid, name, email, role = mock_map[token]
        user = db.query(User).filter(User.id == uid).first()
        if not user:
            user = User(id=uid, name=name, email=email, role=role, created_at=utc_now())
            db.add(user)
            db.commit()
            db.refresh(user)
        return user

    try:
        decoded_token = firebase_auth.verify_id_token(token)
        user_id = decoded_token["uid"]
        email = decoded_token.get("email") or f"{user_id}@users.noreply"
        full_name = decoded_token.get("name")
        role_from_token = decoded_token.get("role")
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase token",
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        user = User(
            id=user_id,
            email=email,
            name=full_name if full_name else email.split('@')[0].title(),
            role=UserRole.admin if role_from_token == "admin" else UserRole.user,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    return user

def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return user
