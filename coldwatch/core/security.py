from jose import JWTError, jwt
from fastapi import HTTPException, Depends, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from .settings import settings

# Los tokens los emite el servicio de autenticación; aquí solo se verifican
oauth2_schema = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

class TokenData(BaseModel):
    user_id: str | None = None


def decode_token(token: str) -> TokenData | None:
    """Devuelve el uid del usuario o None si el token no es válido."""
    try:
        payload = jwt.decode(token, settings.KEY_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    user_id = payload.get("user_id")
    if user_id is None:
        return None
    return TokenData(user_id=str(user_id))


async def get_current_user(token: str = Depends(oauth2_schema)) -> TokenData:
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No autenticado",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = decode_token(token)
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No se pudieron validar las credenciales",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token_data
