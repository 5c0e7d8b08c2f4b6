"""Pydantic models for tracker inputs and outputs."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class FilterRequest(BaseModel):
    key: str = Field(default="", max_length=100)
    value: str = ""

    @field_validator("key")
    @classmethod
    def _strip_key(cls, value: str) -> str:
        return value.strip()


class SetFieldRequest(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str = ""

    @field_validator("key")
    @classmethod
    def _key_is_single_token(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("key must not be blank")
        if ":" in stripped or "\n" in stripped:
            raise ValueError("key must not contain ':' or newlines")
        return stripped


class ShowRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)


class IssueSummary(BaseModel):
    issue_id: str
    status: str = ""
    priority: str = ""
    summary: str = ""
    current: bool = False
    dirty: bool = False


class IssueRecord(BaseModel):
    issue_id: str
    fields: dict[str, str] = Field(default_factory=dict)
    text: str = ""
    working_copy: bool = False


class BaseToolResponse(BaseModel):
    status: Literal["success", "error"]
    message: str = ""
    error_code: str = ""
    suggestion: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class InitResponse(BaseToolResponse):
    directory: str = ""
    main_branch: str = ""
    record_file: str = ""
    fields: list[str] = Field(default_factory=list)


class IssueResponse(BaseToolResponse):
    issue_id: str = ""
    branch: str = ""
    previous_issue: str = ""


class SaveResponse(BaseToolResponse):
    issue_id: str = ""
    committed: bool = False
    closed: bool = False
    current_branch: str = ""


class CancelResponse(BaseToolResponse):
    previous_issue: str = ""
    discarded: bool = False
    current_branch: str = ""


class StatusResponse(BaseToolResponse):
    current_issue: str = ""
    current_branch: str = ""
    dirty: bool = False
    issue: IssueSummary | None = None


class ListResponse(BaseToolResponse):
    key: str = ""
    value: str = ""
    count: int = 0
    issues: list[IssueSummary] = Field(default_factory=list)


class ShowResponse(BaseToolResponse):
    count: int = 0
    issues: list[IssueRecord] = Field(default_factory=list)


class SetFieldResponse(BaseToolResponse):
    issue_id: str = ""
    key: str = ""
    value: str = ""


class BlameResponse(BaseToolResponse):
    issue_id: str = ""
    branch: str = ""
    text: str = ""


class AttachResponse(BaseToolResponse):
    issue_id: str = ""
    files: list[str] = Field(default_factory=list)


class EditResponse(BaseToolResponse):
    issue_id: str = ""
    path: str = ""
    opened: bool = False
