from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from visitdesk.core.security import decode_token
from visitdesk.db.models import Premise
from visitdesk.db.session import get_db
from visitdesk.services.premise_service import require_premise_for_owner

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> str:
    """Principal id from the session provider's bearer token; credentials are not re-verified here."""
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        payload = decode_token(credentials.credentials)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    if payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    principal_id = payload.get("sub")
    if not principal_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    return principal_id


def get_current_premise(
    db: Session = Depends(get_db),
    principal_id: str = Depends(get_current_principal),
) -> Premise:
    return require_premise_for_owner(db, principal_id)
