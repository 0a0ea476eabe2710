# dependencies.py
"""
Shared FastAPI dependencies: bearer-token decoding and the PDC role gate.

Tokens are issued elsewhere; this module only verifies them and turns the
`id` / `role` claims into an AuditContext for the service layer.
"""
import logging

from fastapi import Depends, HTTPException, Request
from jose import JWTError, jwt

import config
from exceptions import AuthorizationError
from services.audit import AuditContext

logger = logging.getLogger(__name__)


# Token Auth Dependency
def verify_token(request: Request) -> dict:
     auth = request.headers.get("Authorization")
     if not auth or not auth.startswith("Bearer "):
          raise HTTPException(status_code=401, detail="Missing token")
     token = auth.split(" ")[1]
     try:
          payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
          return payload
     except JWTError:
          raise HTTPException(status_code=403, detail="Invalid token")


def require_pdc_access(token: dict = Depends(verify_token)) -> AuditContext:
     """
     Allow only back-office roles (admin / manager by default) into PDC routes.

     Returns:
          AuditContext for the acting user

     Raises:
          AuthorizationError: Missing or non-numeric user id, or role not allowed
     """
     role = token.get("role")
     user_id = token.get("id")
     if user_id is None or role not in config.PDC_ALLOWED_ROLES:
          logger.warning("PDC access denied for user %s with role %s", user_id, role)
          raise AuthorizationError("PDC management is restricted to administrative roles")
     try:
          user_id = int(user_id)
     except (TypeError, ValueError):
          logger.warning("PDC access denied: token id %r is not a user id", user_id)
          raise AuthorizationError("Token does not identify a user")
     return AuditContext(user_id=user_id, role=role)
