"""
Pydantic schemas for the token usage endpoint.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class TokenUsageEntry(BaseModel):
    """One ledger row."""
    id: int
    request_type: str = Field(..., description="receipt, insight or meal_plan")
    request_id: str
    prompt_tokens: int
    response_tokens: int
    total_tokens: int
    cost_in_cents: int
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_json")
    created_at: datetime

    class Config:
        from_attributes = True


class TokenUsageSummary(BaseModel):
    """Sums over all of the user's entries, not just the current page."""
    total_prompt_tokens: int
    total_response_tokens: int
    total_tokens: int
    total_cost_cents: int


class TokenUsagePagination(BaseModel):
    page: int
    limit: int
    total_entries: int


class TokenUsageListResponse(BaseModel):
    """Response schema for GET /token-usage."""
    entries: List[TokenUsageEntry]
    summary: TokenUsageSummary
    pagination: TokenUsagePagination

    class Config:
        json_schema_extra = {
            "example": {
                "entries": [
                    {
                        "id": 7,
                        "request_type": "receipt",
                        "request_id": "5b7a6c1e-7d0f-4b55-9a0e-3f0f4d1c2a9b",
                        "prompt_tokens": 1500,
                        "response_tokens": 500,
                        "total_tokens": 2000,
                        "cost_in_cents": 25,
                        "metadata": {"model": "gemini-2.5-flash-preview-05-20"},
                        "created_at": "2024-09-12T14:03:00"
                    }
                ],
                "summary": {
                    "total_prompt_tokens": 1500,
                    "total_response_tokens": 500,
                    "total_tokens": 2000,
                    "total_cost_cents": 25
                },
                "pagination": {"page": 1, "limit": 50, "total_entries": 1}
            }
        }
