"""
API request and response models for the grader REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog.models import Task

# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class Credentials(BaseModel):
    """Request body for POST /api/v1/auth/signup and /api/v1/auth/login.

    max_length on password keeps inputs below bcrypt's 72-byte truncation
    point for ASCII passwords.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """Response for successful signup/login.

    expires_in is seconds until exp, so clients can re-login ahead of a 401.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: int
    username: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    is_admin: bool
    session_expires_at: int


class LogoutResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    sessions_closed: int = 1


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /api/v1/tasks (admin only)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=20_000)


class TaskSummary(BaseModel):
    """One row in GET /api/v1/tasks -- description omitted."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class TaskDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskDetail":
        return cls(id=task.id, name=task.name, description=task.description)


class SolutionSubmit(BaseModel):
    """Request body for POST /api/v1/tasks/{id}/solutions."""

    source: str = Field(min_length=1, max_length=100_000)


class SolutionAccepted(BaseModel):
    """Response for POST /api/v1/tasks/{id}/solutions."""

    model_config = ConfigDict(frozen=True)

    id: int
    task_id: int
    status: str


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
