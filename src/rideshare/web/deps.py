from typing import Annotated, cast

from fastapi import Depends, Request
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer

from rideshare.app import App
from rideshare.config import Config
from rideshare.core.modules.auth.models import AuthToken
from rideshare.errors import AuthenticationError

AUTH_COOKIE = "auth_token"

bearer_scheme = HTTPBearer(auto_error=False)
cookie_scheme = APIKeyCookie(name=AUTH_COOKIE, auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_config(request: Request) -> Config:
    return cast(Config, request.app.state.config)


async def get_auth_token(
    app: Annotated[App, Depends(get_app)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
    token_cookie: Annotated[str | None, Depends(cookie_scheme)] = None,
) -> AuthToken:
    """Bearer header first (mobile clients), then the browser cookie."""
    candidates = []
    if credentials and credentials.scheme.lower() == "bearer":
        candidates.append(credentials.credentials)
    if token_cookie:
        candidates.append(token_cookie)

    for candidate in candidates:
        auth_token = AuthToken(candidate)
        if await app.is_auth_token_valid(auth_token):
            return auth_token

    raise AuthenticationError("Not authorized, no valid token" if candidates else "Not authorized, no token")


AppDep = Annotated[App, Depends(get_app)]
ConfigDep = Annotated[Config, Depends(get_config)]
AuthTokenDep = Annotated[AuthToken, Depends(get_auth_token)]
