"""
Receipt scanning endpoint.

The image goes to Gemini; a successful extraction is saved as an ``ocr``
expense. When Gemini is unavailable the response is a heuristic estimate
flagged with ``fallback`` and nothing is saved.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_api.core.ai_dependency import get_ai_provider, get_token_ledger
from finance_api.core.auth_dependency import get_db, get_current_user_obj
from finance_api.db.models.user import User
from finance_api.llm.provider import LLMProvider
from finance_api.schemas.ai import ReceiptScanRequest, ReceiptScanResponse, ReceiptItem
from finance_api.schemas.finance import ExpenseResponse
from finance_api.services.receipt_service import ReceiptService, InvalidReceiptImage
from finance_api.services.token_usage_service import TokenUsageLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/receipts", tags=["Receipts"])


@router.post("/scan", response_model=ReceiptScanResponse)
def scan_receipt(
    payload: ReceiptScanRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    provider: Optional[LLMProvider] = Depends(get_ai_provider),
    ledger: TokenUsageLedger = Depends(get_token_ledger)
):
    service = ReceiptService(db, provider, ledger)
    try:
        extraction = service.scan(
            user,
            payload.image_base64,
            currency=payload.currency,
            amount_hint=payload.amount_hint,
            locale=payload.locale,
            return_raw=payload.return_raw,
        )
    except InvalidReceiptImage as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Failed to save scanned receipt for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save receipt")

    saved = extraction.saved_expense
    return ReceiptScanResponse(
        suggested_amount=extraction.suggested_amount,
        suggested_date=extraction.suggested_date,
        currency=extraction.currency,
        extracted_text=extraction.extracted_text,
        items=[
            ReceiptItem(
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total=line.total,
            )
            for line in extraction.items
        ],
        confidence=extraction.confidence,
        fallback=extraction.fallback,
        model=extraction.model,
        tokens_used=extraction.tokens_used,
        token_cost_cents=extraction.token_cost_cents,
        raw_model_output=extraction.raw_model_output,
        saved_expense=ExpenseResponse.model_validate(saved) if saved is not None else None,
    )
