"""Role lookup endpoints."""
from fastapi import APIRouter, Query

from app.schemas.order import PrimaryRoleResponse
from app.services.roles import parse_role, select_primary_role

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("/primary", response_model=PrimaryRoleResponse)
def primary_role(roles: list[str] = Query(...)):
    """Pick the dashboard role for a user holding several roles."""
    role = select_primary_role(parse_role(r) for r in roles)
    return PrimaryRoleResponse(role=role.value)
