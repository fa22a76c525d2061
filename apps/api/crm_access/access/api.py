from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from crm_access.access.assignment import Actor
from crm_access.access.errors import (
    AccessError,
    ConflictError,
    ForbiddenError,
    InvalidReferenceError,
    NotFoundError,
    UnavailableError,
)
from crm_access.access.roles import Feature
from crm_access.access.schemas import (
    AccessResolutionRead,
    BulkPermissionCheckRead,
    BulkPermissionCheckRequest,
    HierarchyReportRead,
    PermissionCheckRead,
    PermissionResolutionRead,
    RestrictionCreate,
    RestrictionRead,
    RestrictionUpdate,
    SupervisorValidationRead,
    SupervisorValidationRequest,
    UserSummaryRead,
)
from crm_access.access.service import access_service
from crm_access.context import get_correlation_id
from crm_access.core.auth import AuthUser, get_current_user as get_auth_user
from crm_access.core.database import get_db


router = APIRouter(prefix="/api/access", tags=["access"])

STATUS_BY_ERROR: dict[type[AccessError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidReferenceError: status.HTTP_400_BAD_REQUEST,
    UnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=get_correlation_id() or request.headers.get("x-correlation-id"),
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def access_error_response(request: Request, exc: AccessError) -> JSONResponse:
    status_code = STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    details = exc.details
    if isinstance(exc, UnavailableError):
        details = {"store": exc.store}
    return error_response(request, status_code=status_code, code=exc.code, message=exc.message, details=details)


def get_current_actor(auth_user: AuthUser = Depends(get_auth_user)) -> Actor:
    return Actor(id=auth_user.sub, role=auth_user.role)


@router.get("/permissions", response_model=PermissionResolutionRead | PermissionCheckRead)
def get_permissions(
    feature: str | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
) -> PermissionResolutionRead | PermissionCheckRead:
    if feature is not None:
        return access_service.check_permission(actor.role, feature)
    return access_service.resolve_permissions(actor.role)


@router.post("/permissions/check", response_model=BulkPermissionCheckRead)
def check_permissions(
    dto: BulkPermissionCheckRequest,
    actor: Actor = Depends(get_current_actor),
) -> BulkPermissionCheckRead:
    return BulkPermissionCheckRead(
        role=actor.role,
        results=access_service.bulk_check_permissions(actor.role, dto.features),
    )


@router.get("/assignable-users", response_model=list[UserSummaryRead])
def list_assignable_users(
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[UserSummaryRead] | JSONResponse:
    try:
        return access_service.get_assignable_users(db, actor.id, actor.role)
    except AccessError as exc:
        return access_error_response(request, exc)


@router.get("/resolution", response_model=AccessResolutionRead)
def get_access_resolution(
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> AccessResolutionRead | JSONResponse:
    try:
        return access_service.resolve_access(db, actor.id, actor.role)
    except AccessError as exc:
        return access_error_response(request, exc)


@router.get("/hierarchy/report", response_model=HierarchyReportRead)
def get_hierarchy_report(
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> HierarchyReportRead | JSONResponse:
    try:
        return access_service.get_hierarchy_report(db, actor.id)
    except AccessError as exc:
        return access_error_response(request, exc)


@router.post("/hierarchy/validate", response_model=SupervisorValidationRead)
def validate_supervisor(
    request: Request,
    dto: SupervisorValidationRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> SupervisorValidationRead | JSONResponse:
    try:
        access_service.require_feature(actor, Feature.USER_MANAGEMENT)
        return access_service.validate_supervisor(db, dto.user_id, dto.reports_to)
    except AccessError as exc:
        return access_error_response(request, exc)


@router.post("/restrictions", response_model=RestrictionRead, status_code=status.HTTP_201_CREATED)
def create_restriction(
    request: Request,
    dto: RestrictionCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> RestrictionRead | JSONResponse:
    try:
        return access_service.create_restriction(db, actor, dto)
    except AccessError as exc:
        return access_error_response(request, exc)


@router.get("/restrictions", response_model=list[RestrictionRead])
def list_restrictions(
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[RestrictionRead] | JSONResponse:
    try:
        return access_service.list_restrictions(db, actor)
    except AccessError as exc:
        return access_error_response(request, exc)


@router.patch("/restrictions/{restriction_id}", response_model=RestrictionRead)
def update_restriction(
    request: Request,
    restriction_id: uuid.UUID,
    dto: RestrictionUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> RestrictionRead | JSONResponse:
    try:
        return access_service.update_restriction(db, actor, restriction_id, dto)
    except AccessError as exc:
        return access_error_response(request, exc)


@router.delete("/restrictions/{restriction_id}", response_model=RestrictionRead)
def deactivate_restriction(
    request: Request,
    restriction_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> RestrictionRead | JSONResponse:
    try:
        return access_service.deactivate_restriction(db, actor, restriction_id)
    except AccessError as exc:
        return access_error_response(request, exc)


@router.get("/users/{user_id}/restrictions", response_model=list[RestrictionRead])
def list_user_restrictions(
    request: Request,
    user_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[RestrictionRead] | JSONResponse:
    try:
        if actor.id != user_id:
            access_service.require_admin(actor)
        return access_service.get_active_restrictions(db, user_id)
    except AccessError as exc:
        return access_error_response(request, exc)
