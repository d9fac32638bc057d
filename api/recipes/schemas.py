"""
Pydantic schemas for community recipe endpoints.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class ApprovalRequest(BaseModel):
    approved: bool


# `community` recipes live in community_recipes and are checked on write;
# `external` ids come from the read-only outside catalog and are not.
RecipeSource = Literal["community", "external"]