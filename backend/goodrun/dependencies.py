from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from goodrun.database import get_db
from goodrun.services.auth_service import Actor, auth_service


async def require_token(authorization: str | None = Header(None)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return authorization[7:]


async def require_actor(token: str = Depends(require_token), db: Session = Depends(get_db)) -> Actor:
    # The role comes from the users table on every request, never from the token.
    user = auth_service.resolve(db, token)
    if user is None:
        raise HTTPException(status_code=401, detail="Session expired or invalid")
    return Actor(id=user.id, role=user.role)


async def require_admin(actor: Actor = Depends(require_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return actor
