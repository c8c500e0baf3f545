"""
Pydantic schemas for the AI-backed endpoints: receipts, tips and meal plans.
"""
from typing import Optional, List
import datetime as dt
from pydantic import BaseModel, Field, field_validator

from finance_api.schemas.finance import ExpenseResponse


class ReceiptScanRequest(BaseModel):
    """Base64 receipt image, optionally as a data URI."""
    image_base64: str = Field(..., min_length=1, description="Base64 image or data:<mime>;base64,<payload>")
    currency: Optional[str] = Field(None, max_length=3, description="Defaults to the user's currency")
    amount_hint: Optional[float] = Field(None, gt=0, description="Expected total, used as reference")
    locale: Optional[str] = Field(None, max_length=10, description="Defaults to the user's language")
    return_raw: bool = Field(False, description="Include the model's raw JSON output")

    class Config:
        json_schema_extra = {
            "example": {
                "image_base64": "data:image/png;base64,iVBORw0KGgo...",
                "currency": "BRL",
                "amount_hint": 87.4,
                "locale": "pt-BR",
                "return_raw": False
            }
        }


class ReceiptItem(BaseModel):
    description: str
    quantity: float
    unit_price: float
    total: float


class ReceiptScanResponse(BaseModel):
    """
    Extraction result.

    ``fallback`` is true when the numbers are a heuristic estimate because the
    model was unavailable or failed; fallback results are not saved.
    """
    suggested_amount: float
    suggested_date: dt.date
    currency: str
    extracted_text: str = ""
    items: List[ReceiptItem] = []
    confidence: float
    fallback: bool = False
    model: str = ""
    tokens_used: int = 0
    token_cost_cents: int = 0
    raw_model_output: Optional[str] = None
    saved_expense: Optional[ExpenseResponse] = None


class TipResponse(BaseModel):
    id: int
    type: str
    text: str
    model_source: str
    relevance: int
    created_at: dt.datetime

    class Config:
        from_attributes = True


class TipListResponse(BaseModel):
    tips: List[TipResponse]
    source: str = Field(..., description="'gemini' or 'heuristic' for a fresh generation, 'stored' otherwise")


class GenerateMealPlanRequest(BaseModel):
    """Preferences for a generated plan; every field is optional."""
    week: Optional[str] = Field(None, description="ISO week YYYY-Www, defaults to the current week")
    calorie_goal: Optional[int] = Field(None, gt=0, description="Daily calorie goal")
    servings: Optional[int] = Field(None, gt=0)
    dietary_preference: Optional[str] = Field(None, max_length=120)
    exclusions: List[str] = Field(default_factory=list, description="Ingredients to avoid")
    budget: Optional[float] = Field(None, gt=0, description="Maximum weekly budget")

    @field_validator("exclusions")
    @classmethod
    def clean_exclusions(cls, v: List[str]) -> List[str]:
        return [item.strip() for item in v if item and item.strip()]

    class Config:
        json_schema_extra = {
            "example": {
                "week": "2024-W37",
                "calorie_goal": 1800,
                "servings": 2,
                "dietary_preference": "vegetariano",
                "exclusions": ["amendoim"],
                "budget": 250.0
            }
        }


class MealItemResponse(BaseModel):
    id: int
    day_of_week: str
    meal_type: str
    title: str
    estimated_cost: float
    ingredients: List[str] = []
    instructions: Optional[str] = None

    class Config:
        from_attributes = True


class MealPlanResponse(BaseModel):
    id: int
    iso_week: str
    calorie_goal: int
    estimated_cost: float
    generated_by_ai: bool
    created_at: dt.datetime
    items: List[MealItemResponse]

    class Config:
        from_attributes = True
