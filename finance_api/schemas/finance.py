"""
Pydantic schemas for categories, expenses, dashboard and sync endpoints.
"""
from typing import Optional, List
import datetime as dt
from pydantic import BaseModel, Field, field_validator

CATEGORY_TYPE_PATTERN = "^(fixa|variavel)$"
ORIGIN_PATTERN = "^(manual|ocr|ia)$"


def _check_color(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v.startswith("#"):
        raise ValueError("Color must be hexadecimal, e.g. #FF8800")
    return v


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=60)
    icon: Optional[str] = Field(None, max_length=40)
    color_hex: Optional[str] = Field(None, max_length=7, description="#RRGGBB")
    type: str = Field("variavel", pattern=CATEGORY_TYPE_PATTERN)
    order: int = Field(0, ge=0)
    active: bool = True

    @field_validator("color_hex")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _check_color(v)


class CategoryUpdate(BaseModel):
    """Partial update; omitted fields are left alone."""
    name: Optional[str] = Field(None, min_length=1, max_length=60)
    icon: Optional[str] = Field(None, max_length=40)
    color_hex: Optional[str] = Field(None, max_length=7)
    type: Optional[str] = Field(None, pattern=CATEGORY_TYPE_PATTERN)
    order: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None

    @field_validator("color_hex")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _check_color(v)


class CategoryResponse(BaseModel):
    id: int
    name: str
    icon: Optional[str] = None
    color_hex: Optional[str] = None
    type: str
    order: int
    active: bool

    class Config:
        from_attributes = True


class ReceiptInput(BaseModel):
    file_path: Optional[str] = None
    extracted_text: Optional[str] = None
    ocr_confidence: Optional[float] = Field(None, ge=0, le=1)


class ReceiptResponse(BaseModel):
    id: int
    file_path: Optional[str] = None
    extracted_text: Optional[str] = None
    ocr_confidence: Optional[float] = None

    class Config:
        from_attributes = True


class ExpenseItemResponse(BaseModel):
    id: int
    name: str
    quantity: float
    unit_price: float
    total_price: float
    category_tag: Optional[str] = None

    class Config:
        from_attributes = True


class ExpenseCreate(BaseModel):
    category_id: int
    description: str = Field(..., min_length=1, max_length=255)
    amount: float = Field(..., gt=0)
    date: dt.date
    recurring: bool = False
    origin: str = Field("manual", pattern=ORIGIN_PATTERN)
    receipt: Optional[ReceiptInput] = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Description is required")
        return v


class ExpenseUpdate(BaseModel):
    """Partial update. ``remove_receipt`` wins over ``receipt``."""
    category_id: Optional[int] = None
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[float] = Field(None, gt=0)
    date: Optional[dt.date] = None
    recurring: Optional[bool] = None
    origin: Optional[str] = Field(None, pattern=ORIGIN_PATTERN)
    receipt: Optional[ReceiptInput] = None
    remove_receipt: bool = False


class ExpenseResponse(BaseModel):
    id: int
    category_id: int
    category: Optional[CategoryResponse] = None
    description: str
    amount: float
    date: dt.date
    recurring: bool
    origin: str
    receipt: Optional[ReceiptResponse] = None
    items: List[ExpenseItemResponse] = []
    created_at: dt.datetime

    class Config:
        from_attributes = True


class ExpenseSummary(BaseModel):
    count: int
    total: float
    average: float


class ExpenseListResponse(BaseModel):
    month: int
    year: int
    expenses: List[ExpenseResponse]
    summary: ExpenseSummary


class CategoryTotal(BaseModel):
    category: CategoryResponse
    total: float


class DashboardSummaryResponse(BaseModel):
    month: int
    year: int
    total_spent: float
    previous_total: float
    variation_pct: float
    top_categories: List[CategoryTotal]


class SyncRequest(BaseModel):
    origin: str = Field("mobile", pattern="^(mobile|web|backup)$")


class SyncJobResponse(BaseModel):
    id: int
    origin: str
    status: str
    started_at: dt.datetime
    finished_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True
