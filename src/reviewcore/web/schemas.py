"""Request and response schemas for the reviewcore API.

JSON bodies use camelCase keys (``commitId``, ``isEnabled``); snake_case
keys are accepted on input as well. Enumerations are exchanged as their
upper-case names (``PENDING``, ``SECURITY``, ...).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from reviewcore.database.models.repository import VCSProvider
from reviewcore.database.models.review import ReviewStatus
from reviewcore.database.models.rule import RuleCategory, Severity


class ApiModel(BaseModel):
    """Base for API schemas: camelCase aliases, readable from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Repositories


class RepositoryCreate(ApiModel):
    name: str | None = None
    url: str | None = None
    description: str | None = None
    vcs_provider: VCSProvider = VCSProvider.GITHUB
    default_branch: str = Field(default="main", min_length=1, max_length=255)
    is_private: bool = False


class RepositoryUpdate(ApiModel):
    name: str | None = None
    description: str | None = None
    default_branch: str | None = Field(default=None, min_length=1, max_length=255)
    is_private: bool | None = None


class RepositoryResponse(ApiModel):
    id: UUID
    name: str
    url: str
    description: str | None
    vcs_provider: VCSProvider
    default_branch: str
    is_private: bool
    is_active: bool
    owner_id: UUID
    created_at: datetime
    updated_at: datetime


# Reviews


class ReviewCreate(ApiModel):
    commit_id: str | None = None
    branch: str | None = None


class ReviewResponse(ApiModel):
    id: UUID
    repository_id: UUID
    triggered_by_id: UUID
    commit_id: str
    branch: str
    status: ReviewStatus
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias="review_metadata",
        serialization_alias="metadata",
    )
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class FindingResponse(ApiModel):
    id: UUID
    review_id: UUID
    rule_id: UUID
    file_path: str
    line_number: int
    column_start: int | None
    column_end: int | None
    severity: Severity
    message: str
    snippet: str | None
    suggested_fix: str | None
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias="finding_metadata",
        serialization_alias="metadata",
    )
    created_at: datetime


class ReviewDetailResponse(ReviewResponse):
    findings: list[FindingResponse] = Field(default_factory=list)


class ReviewStatsResponse(ApiModel):
    total: int
    completed: int
    failed: int
    pending: int
    average_time_ms: float


# Rules


class RuleCreate(ApiModel):
    name: str | None = None
    description: str | None = None
    category: RuleCategory | None = None
    severity: Severity | None = None
    pattern: dict[str, Any] | None = None
    configuration: dict[str, Any] | None = None
    is_enabled: bool = True


class RuleUpdate(ApiModel):
    name: str | None = None
    description: str | None = None
    category: RuleCategory | None = None
    severity: Severity | None = None
    pattern: dict[str, Any] | None = None
    configuration: dict[str, Any] | None = None
    is_enabled: bool | None = None


class RuleBulkUpdate(ApiModel):
    rule_ids: list[UUID]
    is_enabled: bool


class RuleResponse(ApiModel):
    id: UUID
    name: str
    description: str
    category: RuleCategory
    severity: Severity
    pattern: dict[str, Any] | None
    configuration: dict[str, Any] | None
    is_enabled: bool
    is_custom: bool
    created_by_id: UUID | None
    created_at: datetime
    updated_at: datetime


class RuleBulkUpdateResponse(ApiModel):
    updated_count: int
    rules: list[RuleResponse]
