import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from doc_index.auth import Role, resolve_role
from doc_index.client import DocIndexClient
from doc_index.config import DocIndexConfig
from doc_index.models.auth import LoginRequest, LoginResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# --- app-scoped objects ---
def get_client(request: Request) -> DocIndexClient:
    return request.app.state.client


def get_config(request: Request) -> DocIndexConfig:
    return request.app.state.config


def role_for(config: DocIndexConfig, credential: Optional[str]) -> Role:
    return resolve_role(credential, config.auth.team_password, config.auth.admin_password)


# --- credential sources ---
async def cookie_role(
    request: Request,
    config: Annotated[DocIndexConfig, Depends(get_config)],
) -> Role:
    """Role carried by the persistent auth cookie."""
    return role_for(config, request.cookies.get(config.auth.cookie_name))


async def require_team(role: Annotated[Role, Depends(cookie_role)]) -> Role:
    if role < Role.TEAM:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return role


async def require_admin(role: Annotated[Role, Depends(cookie_role)]) -> Role:
    if role < Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return role


async def require_file_access(
    config: Annotated[DocIndexConfig, Depends(get_config)],
    role: Annotated[Role, Depends(cookie_role)],
    token: Annotated[Optional[str], Query()] = None,
) -> Role:
    """
    The delivery path also takes the secret as ?token= so that clients
    without cookies (chat links) can fetch files. Either source suffices.
    """
    effective = max(role, role_for(config, token))
    if effective < Role.TEAM:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return effective


# --- login / logout ---
@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    config: Annotated[DocIndexConfig, Depends(get_config)],
):
    role = role_for(config, body.password)
    if role == Role.GUEST:
        logger.info("Rejected login attempt")
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": "Invalid password"},
        )

    response = JSONResponse(content={"success": True, "level": role.label})
    response.set_cookie(
        config.auth.cookie_name,
        body.password,
        max_age=config.auth.cookie_max_age,
        path="/",
        httponly=True,
        secure=config.auth.cookie_secure,
        samesite="lax",
    )
    logger.info(f"Login as {role.label}")
    return response


@router.post("/logout")
async def logout(config: Annotated[DocIndexConfig, Depends(get_config)]):
    response = JSONResponse(content={"success": True})
    response.delete_cookie(
        config.auth.cookie_name,
        path="/",
        httponly=True,
        secure=config.auth.cookie_secure,
    )
    return response
