from fastapi import HTTPException, status

STORE_TOKENS_MISSING_ERROR = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Store tokens missing or expired",
    headers={"WWW-Authenticate": "Bearer"},
)
