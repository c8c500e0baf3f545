"""
Receipt OCR through Gemini.

A base64 receipt image is sent with an extraction prompt; the reconciled
result is saved as an "ocr" expense with its items and receipt. Without a
configured provider, or when the model fails, a size-based heuristic
estimate is returned instead. That estimate is flagged ``fallback`` and is
not saved.
"""
import base64
import binascii
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from finance_api.core import config
from finance_api.db.models.category import Category
from finance_api.db.models.expense import Expense, ExpenseItem, Receipt
from finance_api.db.models.user import User
from finance_api.db.session import atomic
from finance_api.llm.errors import AIClientError
from finance_api.llm.parsing import parse_json_object, sanitize_json, dict_items
from finance_api.llm.provider import LLMProvider, GenerateContentRequest, ContentPart
from finance_api.services.reconciler import (
    clamp_confidence,
    clean_text,
    round_money,
    to_float,
)
from finance_api.services.token_usage_service import TokenUsageLedger

logger = logging.getLogger(__name__)

OCR_CATEGORY_NAME = "Compras OCR"
DEFAULT_MIME_TYPE = "image/jpeg"
_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y")
ITEM_NAME_MAX_LENGTH = ExpenseItem.__table__.c.name.type.length


class InvalidReceiptImage(ValueError):
    pass


@dataclass
class ReceiptLine:
    description: str
    quantity: float = 0.0
    unit_price: float = 0.0
    total: float = 0.0


@dataclass
class ReceiptExtraction:
    """Reconciled receipt data, from the model or from the heuristic."""
    suggested_amount: float
    suggested_date: date
    currency: str
    confidence: float
    extracted_text: str = ""
    items: List[ReceiptLine] = field(default_factory=list)
    fallback: bool = False
    model: str = ""
    tokens_used: int = 0
    token_cost_cents: int = 0
    raw_model_output: Optional[str] = None
    saved_expense: Optional[Expense] = None


def split_data_uri(raw: str) -> Tuple[str, str]:
    """
    Split an optional "data:<mime>;base64," prefix off the payload.

    Returns:
        (mime_type, base64 payload)
    """
    mime_type = DEFAULT_MIME_TYPE
    payload = raw.strip()
    if "," in payload:
        prefix, payload = payload.split(",", 1)
        if prefix.startswith("data:"):
            declared = prefix[len("data:"):].split(";", 1)[0].strip()
            if declared:
                mime_type = declared
    return mime_type, payload.strip()


def decode_image(raw: str) -> Tuple[str, str, bytes]:
    """
    Raises:
        InvalidReceiptImage: empty or not valid base64
    """
    if not raw or not raw.strip():
        raise InvalidReceiptImage("Image is required")
    mime_type, payload = split_data_uri(raw)
    if not payload:
        raise InvalidReceiptImage("Empty base64 payload")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidReceiptImage(f"Invalid base64 image: {e}") from e
    if not data:
        raise InvalidReceiptImage("Empty base64 payload")
    return mime_type, payload, data


def heuristic_amount(image_size: int) -> float:
    return round_money(19.75 * max(image_size / 1000.0, 1.0))


def heuristic_confidence(image_size: int) -> float:
    return min(0.7 + min(image_size / 12000.0, 0.2), 0.95)


def choose_date(value: Any, today: Optional[date] = None) -> date:
    """Accept YYYY-MM-DD, RFC3339, DD/MM/YYYY or DD-MM-YYYY; anything else is today."""
    text = clean_text(value)
    if text:
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    return today or date.today()


def fallback_extraction(image_size: int, currency: str, amount_hint: Optional[float]) -> ReceiptExtraction:
    amount = heuristic_amount(image_size)
    if amount_hint and amount_hint > 0:
        amount = round_money(amount_hint)
    return ReceiptExtraction(
        suggested_amount=amount,
        suggested_date=date.today(),
        currency=currency,
        confidence=round_money(heuristic_confidence(image_size)),
        fallback=True,
    )


def extraction_from_payload(payload: Dict[str, Any], image_size: int, currency: str,
                            amount_hint: Optional[float]) -> ReceiptExtraction:
    amount = to_float(payload.get("total")) or 0.0
    if amount <= 0 and amount_hint and amount_hint > 0:
        amount = amount_hint
    if amount <= 0:
        amount = heuristic_amount(image_size)

    confidence = clamp_confidence(payload.get("confidence"))
    if confidence <= 0:
        confidence = heuristic_confidence(image_size)

    extracted_text = (
        clean_text(payload.get("raw_text"))
        or clean_text(payload.get("rawText"))
        or clean_text(payload.get("notes"))
    )

    items = []
    for item in dict_items(payload.get("items")):
        description = clean_text(item.get("description"), max_length=ITEM_NAME_MAX_LENGTH)
        if not description:
            continue
        items.append(ReceiptLine(
            description=description,
            quantity=round_money(item.get("quantity")),
            unit_price=round_money(item.get("unitPrice") or item.get("unit_price")),
            total=round_money(item.get("total")),
        ))

    return ReceiptExtraction(
        suggested_amount=round_money(amount),
        suggested_date=choose_date(payload.get("date")),
        currency=clean_text(payload.get("currency")).upper() or currency,
        confidence=round_money(confidence),
        extracted_text=extracted_text,
        items=items,
    )


def build_receipt_prompt(currency: str, locale: str, amount_hint: Optional[float]) -> str:
    lines = [
        "Você é um assistente de finanças que extrai dados estruturados de recibos em imagem.",
        "Retorne apenas JSON, sem comentários nem texto adicional.",
        "Formato esperado:",
        '{"total": number, "currency": "' + currency + '", "confidence": number entre 0 e 1, '
        '"date": "YYYY-MM-DD", "items": [ {"description": string, "quantity": number, '
        '"unitPrice": number, "total": number} ], "raw_text": string, "notes": string }',
        "Se algum valor não estiver presente, use null ou string vazia.",
        "Use ponto como separador decimal.",
        f"Interprete quantias na moeda {currency} e utilize o formato de data {locale} convertendo para YYYY-MM-DD.",
    ]
    if amount_hint and amount_hint > 0:
        lines.append(
            f"O total esperado aproximado é {amount_hint:.2f} {currency}. "
            "Utilize isso apenas como referência ao validar o valor extraído."
        )
    lines.append("Mantenha a chave currency em letras maiúsculas.")
    return "\n".join(lines) + "\n"


class ReceiptService:
    """Scans receipts and saves the result as an expense."""

    def __init__(self, db: Session, provider: Optional[LLMProvider], ledger: TokenUsageLedger,
                 logger: Optional[logging.Logger] = None,
                 timeout: float = config.RECEIPT_TIMEOUT_SECONDS):
        self.db = db
        self.provider = provider
        self.ledger = ledger
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def scan(self, user: User, image_base64: str, currency: Optional[str] = None,
             amount_hint: Optional[float] = None, locale: Optional[str] = None,
             return_raw: bool = False, cancel_event: Optional[threading.Event] = None) -> ReceiptExtraction:
        """
        Raises:
            InvalidReceiptImage: the image is missing or not base64
        """
        mime_type, payload, data = decode_image(image_base64)
        cfg = user.config
        currency = clean_text(currency).upper() or (cfg.currency.strip().upper() if cfg and cfg.currency else "") or "BRL"
        locale = clean_text(locale) or (cfg.language.strip() if cfg and cfg.language else "") or "pt-BR"

        if self.provider is None:
            self.logger.info(f"Gemini not configured, heuristic receipt for user_id={user.id}")
            return fallback_extraction(len(data), currency, amount_hint)

        model = getattr(self.provider, "model", "")
        request = GenerateContentRequest.from_parts(
            ContentPart.text_part(build_receipt_prompt(currency, locale, amount_hint)),
            ContentPart.inline_image(mime_type, payload),
        )
        try:
            result = self.provider.generate_content(request, timeout=self.timeout, cancel_event=cancel_event)
        except AIClientError as e:
            self.logger.warning(f"Gemini receipt scan failed for user_id={user.id}: {type(e).__name__}: {e}")
            extraction = fallback_extraction(len(data), currency, amount_hint)
            extraction.model = model
            return extraction

        metadata = {
            "locale": locale,
            "mime_type": mime_type,
            "return_raw": return_raw,
            "has_amount_hint": bool(amount_hint),
            "model": result.model or model,
        }
        sanitized = sanitize_json(result.text)

        try:
            extraction = extraction_from_payload(parse_json_object(sanitized), len(data), currency, amount_hint)
        except AIClientError as e:
            # tokens were spent even though the output is unusable
            self.logger.warning(f"Could not parse receipt output for user_id={user.id}: {e}")
            self.ledger.record(self.db, user.id, "receipt", result.usage, {**metadata, "parse_error": True})
            extraction = fallback_extraction(len(data), currency, amount_hint)
            extraction.model = result.model or model
            return extraction

        extraction.model = result.model or model
        extraction.tokens_used = result.usage.total_token_count
        if return_raw:
            extraction.raw_model_output = sanitized

        expense = self._persist(user, extraction, sanitized)
        extraction.saved_expense = expense

        metadata.update({
            "currency": extraction.currency,
            "items_detected": len(extraction.items),
            "expense_id": expense.id,
        })
        entry = self.ledger.record(self.db, user.id, "receipt", result.usage, metadata)
        if entry is not None:
            extraction.token_cost_cents = entry.cost_in_cents

        self.logger.info(
            f"Receipt scanned: user_id={user.id}, expense_id={expense.id}, items={len(extraction.items)}"
        )
        return extraction

    def _ensure_ocr_category(self, user_id: int) -> Category:
        category = (
            self.db.query(Category)
            .filter(Category.user_id == user_id, Category.name == OCR_CATEGORY_NAME)
            .first()
        )
        if category is None:
            category = Category(
                user_id=user_id,
                name=OCR_CATEGORY_NAME,
                icon="shopping_cart",
                color_hex="#2E7D32",
                type="variavel",
                order=999,
                active=True,
            )
            self.db.add(category)
            self.db.flush()
        return category

    def _persist(self, user: User, extraction: ReceiptExtraction, raw_model: str) -> Expense:
        """Category, expense, items and receipt in one transaction."""
        with atomic(self.db):
            category = self._ensure_ocr_category(user.id)
            expense = Expense(
                user_id=user.id,
                category_id=category.id,
                description=f"Compras no mercado ({extraction.suggested_date.strftime('%d/%m')})",
                amount=max(extraction.suggested_amount, 0.0),
                date=extraction.suggested_date,
                origin="ocr",
            )
            expense.items = [
                ExpenseItem(
                    name=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.total,
                )
                for line in extraction.items
            ]
            expense.receipt = Receipt(
                extracted_text=extraction.extracted_text or raw_model.strip(),
                ocr_confidence=extraction.confidence,
            )
            self.db.add(expense)

        return (
            self.db.query(Expense)
            .options(
                selectinload(Expense.category),
                selectinload(Expense.items),
                selectinload(Expense.receipt),
            )
            .filter(Expense.id == expense.id)
            .one()
        )
