"""Approval action payloads."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from leaveflow.users.schemas import CamelModel


class ApprovalDecision(CamelModel):
    """Body for approve / reject. Generic rejection requires ``comments``."""

    comments: Optional[str] = Field(None, max_length=1000)
