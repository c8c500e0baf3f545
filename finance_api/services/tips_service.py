"""
Financial tips: Gemini first, deterministic heuristics as fallback.

A regeneration replaces all of the user's stored tips in one transaction.
"""
import logging
import threading
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from finance_api.core import config
from finance_api.db.base import utcnow
from finance_api.db.models.tip import GeneratedTip
from finance_api.db.models.user import User
from finance_api.db.session import atomic
from finance_api.llm.errors import AIClientError
from finance_api.llm.parsing import parse_json_payload, dict_items
from finance_api.llm.provider import LLMProvider, GenerateContentRequest, ContentPart, GenerationResult
from finance_api.services import expense_service
from finance_api.services.reconciler import normalize_tip_type, clamp_relevance, clean_text
from finance_api.services.token_usage_service import TokenUsageLedger

logger = logging.getLogger(__name__)

HEURISTIC_SOURCE = "heuristic"
VISIBLE_TIPS = 5


def user_preferences(user: User) -> Tuple[str, float, str]:
    """(currency, monthly_limit, language) with defaults for a missing config."""
    cfg = user.config
    currency = (cfg.currency if cfg and cfg.currency else "BRL").strip().upper()
    monthly_limit = cfg.monthly_limit if cfg and cfg.monthly_limit and cfg.monthly_limit > 0 else 0.0
    language = (cfg.language if cfg and cfg.language else "pt-BR").strip()
    return currency, monthly_limit, language


def build_tips_prompt(name: str, currency: str, language: str, month: int, year: int,
                      total: float, monthly_limit: float, categories: List[Dict], expenses: List) -> str:
    lines = [
        "Você é um assistente financeiro pessoal.",
        "Use os dados fornecidos para criar de 3 a 5 dicas práticas e motivacionais.",
        'Responda apenas em JSON no formato {"tips":[{"type":"...","message":"...","relevance":int}]} sem comentários adicionais.',
        "Tipos permitidos: alerta, planejamento, economia. O campo relevance deve estar entre 0 e 100.",
        "Dados do usuário:",
        f"- Nome: {name.strip()}",
        f"- Mês analisado: {month:02d}/{year}",
        f"- Total gasto no período: {total:.2f} {currency}",
    ]
    if monthly_limit > 0:
        lines.append(f"- Limite mensal configurado: {monthly_limit:.2f} {currency}")
    if categories:
        lines.append("- Principais categorias:")
        for index, entry in enumerate(categories, start=1):
            lines.append(f"  {index}. {entry['category'].name}: {entry['total']:.2f} {currency}")
    if expenses:
        lines.append("- Despesas recentes:")
        for expense in expenses[:8]:
            category_name = expense.category.name if expense.category else ""
            lines.append(
                f"  - {expense.date.strftime('%d/%m')}: {expense.description} em {category_name} "
                f"({expense.amount:.2f} {currency})"
            )
    lines.append(f"Considere que o idioma preferido do usuário é {language}. Sempre inclua orientações acionáveis, curtas e claras.")
    lines.append("Se o usuário estiver perto ou acima do limite, priorize dicas de alerta e planejamento.")
    lines.append("Garanta que cada dica esteja adaptada ao contexto apresentado.")
    return "\n".join(lines) + "\n"


def convert_tips(user_id: int, payload: Dict, model: str) -> List[GeneratedTip]:
    """Reconcile the model's tips; blank messages and unknown types are skipped."""
    tips = []
    for item in dict_items(payload.get("tips")):
        text = clean_text(item.get("message") or item.get("text"))
        if not text:
            continue
        tip_type = normalize_tip_type(item.get("type"))
        if tip_type is None:
            logger.debug(f"Skipping tip with unknown type: {item.get('type')!r}")
            continue
        tips.append(GeneratedTip(
            user_id=user_id,
            type=tip_type,
            text=text,
            model_source=model,
            relevance=clamp_relevance(item.get("relevance")),
        ))
    return tips


def heuristic_tips(user_id: int, total: float, monthly_limit: float,
                   categories: List[Dict]) -> List[GeneratedTip]:
    """Deterministic tips from the month's spend; never empty."""
    tips = []
    if monthly_limit > 0:
        if total > monthly_limit:
            tips.append(GeneratedTip(
                user_id=user_id,
                type="alerta",
                text=f"Você já ultrapassou seu limite mensal de R$ {monthly_limit:.2f}. Revise seus gastos das últimas semanas.",
                model_source=HEURISTIC_SOURCE,
                relevance=95,
            ))
        elif total > monthly_limit * 0.85:
            tips.append(GeneratedTip(
                user_id=user_id,
                type="planejamento",
                text=f"Atingiu {int(total / monthly_limit * 100)}% do limite mensal. Considere pausar compras não essenciais para evitar surpresas.",
                model_source=HEURISTIC_SOURCE,
                relevance=80,
            ))

    if categories:
        top = categories[0]
        tips.append(GeneratedTip(
            user_id=user_id,
            type="economia",
            text=f"Categoria {top['category'].name} representa R$ {top['total']:.2f} neste mês. Avalie trocas ou renegociações para reduzir esse custo.",
            model_source=HEURISTIC_SOURCE,
            relevance=75,
        ))

    tips.append(GeneratedTip(
        user_id=user_id,
        type="planejamento",
        text="Reserve 10 minutos para revisar seu fluxo de caixa e planejar a próxima semana.",
        model_source=HEURISTIC_SOURCE,
        relevance=60,
    ))
    return tips


class TipsService:
    """Loads and regenerates a user's financial tips."""

    def __init__(self, db: Session, provider: Optional[LLMProvider], ledger: TokenUsageLedger,
                 logger: Optional[logging.Logger] = None,
                 timeout: float = config.TIPS_TIMEOUT_SECONDS):
        self.db = db
        self.provider = provider
        self.ledger = ledger
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def load(self, user_id: int) -> List[GeneratedTip]:
        return (
            self.db.query(GeneratedTip)
            .filter(GeneratedTip.user_id == user_id)
            .order_by(GeneratedTip.relevance.desc(), GeneratedTip.created_at.desc(), GeneratedTip.id.desc())
            .limit(VISIBLE_TIPS)
            .all()
        )

    def regenerate(self, user: User, month: int, year: int,
                   cancel_event: Optional[threading.Event] = None) -> Tuple[List[GeneratedTip], bool]:
        """
        Replace the user's tips.

        Returns:
            (visible tips, whether the AI produced them)
        """
        start, end = expense_service.month_interval(month, year)
        total = expense_service.aggregate_total(self.db, user.id, start, end)
        categories = expense_service.top_categories(self.db, user.id, start, end)
        currency, monthly_limit, language = user_preferences(user)

        ai_tips, result = None, None
        if self.provider is not None:
            try:
                result = self._request_tips(
                    user, month, year, total, monthly_limit, currency, language, categories, cancel_event
                )
                model = result.model or getattr(self.provider, "model", "")
                ai_tips = convert_tips(user.id, parse_json_payload(result.text, "tips"), model)
            except AIClientError as e:
                self.logger.warning(f"Gemini tips failed for user_id={user.id}: {type(e).__name__}: {e}")

        if ai_tips:
            self._replace(user.id, ai_tips)
            self.logger.info(f"Tips regenerated via gemini: user_id={user.id}, count={len(ai_tips)}")
        else:
            self.logger.info(f"Using heuristic tips for user_id={user.id}")
            self._replace(user.id, heuristic_tips(user.id, total, monthly_limit, categories))

        if result is not None:
            # a completed call is billed even when its output was unusable
            metadata = {
                "month": month,
                "year": year,
                "tips_generated": len(ai_tips or []),
                "model": result.model,
            }
            if not ai_tips:
                metadata["parse_error"] = True
            self.ledger.record(self.db, user.id, "insight", result.usage, metadata)

        return self.load(user.id), bool(ai_tips)

    def _request_tips(self, user, month, year, total, monthly_limit, currency, language,
                      categories, cancel_event) -> GenerationResult:
        recent = expense_service.recent_expenses(self.db, user.id, limit=6)
        prompt = build_tips_prompt(user.name, currency, language, month, year, total,
                                   monthly_limit, categories, recent)
        return self.provider.generate_content(
            GenerateContentRequest.from_parts(ContentPart.text_part(prompt)),
            timeout=self.timeout,
            cancel_event=cancel_event,
        )

    def _replace(self, user_id: int, tips: List[GeneratedTip]):
        now = utcnow()
        with atomic(self.db):
            self.db.query(GeneratedTip).filter(GeneratedTip.user_id == user_id).delete()
            for tip in tips:
                tip.created_at = now
                self.db.add(tip)
