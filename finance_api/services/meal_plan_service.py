"""
Weekly meal plans built from the user's grocery history.

Gemini drafts the plan; when it is unavailable or returns nothing usable a
fixed 7-day x 3-meal heuristic plan is used instead. Saving a plan for a
(user, ISO week) replaces any previous one atomically.
"""
import logging
import re
import threading
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from finance_api.core import config
from finance_api.db.models.meal_plan import MealPlan, MealItem
from finance_api.db.models.user import User
from finance_api.db.session import atomic
from finance_api.llm.errors import AIClientError, AIParseError
from finance_api.llm.parsing import parse_json_payload, dict_items
from finance_api.llm.provider import LLMProvider, GenerateContentRequest, ContentPart, GenerationResult
from finance_api.services import expense_service
from finance_api.services.reconciler import (
    MEAL_DAYS,
    normalize_meal_day,
    normalize_meal_type,
    clean_text,
    clean_string_list,
    round_money,
    to_int,
)
from finance_api.services.tips_service import user_preferences
from finance_api.services.token_usage_service import TokenUsageLedger

logger = logging.getLogger(__name__)

DEFAULT_CALORIE_GOAL = 2000
HEURISTIC_PLAN_COST = 210.0
FALLBACK_COST_PER_MEAL = 18.0
TITLE_MAX_LENGTH = MealItem.__table__.c.title.type.length

_ISO_WEEK_RE = re.compile(r"^\s*(\d{4})-W(\d{1,2})\s*$", re.IGNORECASE)


class InvalidISOWeek(ValueError):
    pass


def format_iso_week(year: int, week: int) -> str:
    return f"{year}-W{week:02d}"


def current_iso_week(today: Optional[date] = None) -> Tuple[int, int, str]:
    year, week, _ = (today or date.today()).isocalendar()
    return year, week, format_iso_week(year, week)


def parse_iso_week(value: str) -> Tuple[int, int]:
    """Parse "YYYY-Www" (week 1..53)."""
    match = _ISO_WEEK_RE.match(value or "")
    if not match:
        raise InvalidISOWeek(f"Invalid ISO week: {value!r} (expected YYYY-Www)")
    year, week = int(match.group(1)), int(match.group(2))
    if week < 1 or week > 53:
        raise InvalidISOWeek("Week out of range (1-53)")
    return year, week


def resolve_iso_week(value: Optional[str]) -> Tuple[int, int, str]:
    """Blank means the current week; otherwise parse and re-format canonically."""
    if not value or not value.strip():
        return current_iso_week()
    year, week = parse_iso_week(value)
    return year, week, format_iso_week(year, week)


def iso_week_start(year: int, week: int) -> date:
    """Monday of the given ISO week."""
    jan4 = date(year, 1, 4)
    monday = jan4 - timedelta(days=jan4.isoweekday() - 1)
    return monday + timedelta(weeks=week - 1)


def build_meal_plan_prompt(name: str, iso_week: str, start: date, currency: str, language: str,
                           options: Dict[str, Any], expenses: List, items: List,
                           categories: List[Dict]) -> str:
    lines = [
        "Você é um nutricionista financeiro que cria planos de refeições realistas.",
        "Entregue receitas práticas usando ingredientes do histórico de compras.",
        "Retorne apenas JSON com este formato:",
        '{"estimatedCost":number,"calorieGoal":number,"meals":[{"day":"seg|ter|...","mealType":"cafe|almoco|janta|lanche","title":"...","ingredients":["ingredient"],"instructions":"passo a passo","estimatedCost":number}]}',
        f"Use ponto como separador decimal e idioma {language}.",
        f"Planeje a semana ISO {iso_week} iniciando em {start.strftime('%d/%m/%Y')}.",
        f"Moeda preferida: {currency}.",
    ]
    if options.get("calorie_goal"):
        lines.append(f"Objetivo calórico diário: {options['calorie_goal']} kcal.")
    if options.get("servings"):
        lines.append(f"Número de porções por refeição: {options['servings']}.")
    if options.get("dietary_preference"):
        lines.append(f"Preferência alimentar: {options['dietary_preference']}.")
    if options.get("exclusions"):
        lines.append("Evite ingredientes: " + ", ".join(options["exclusions"]) + ".")
    if options.get("budget"):
        lines.append(f"Orçamento semanal máximo: {options['budget']:.2f} {currency}.")

    if categories:
        lines.append("Categorias com mais gastos recentes:")
        for index, entry in enumerate(categories, start=1):
            lines.append(f"  {index}. {entry['category'].name}: {entry['total']:.2f} {currency}")

    if items:
        lines.append("Itens de mercado recentes:")
        for item in items[:20]:
            lines.append(f"  - {item.name} ({item.quantity:.2f} unidades), total {item.total_price:.2f} {currency}")
    elif expenses:
        lines.append("Despesas recentes relevantes:")
        for expense in expenses[:10]:
            category_name = expense.category.name if expense.category else ""
            lines.append(
                f"  - {expense.description} ({expense.date.strftime('%d/%m')}) em {category_name}: "
                f"{expense.amount:.2f} {currency}"
            )

    lines.append("Inclua instruções passo a passo curtas (máx 3 frases) para cada refeição.")
    lines.append("Garanta que os dias usem a sigla em português (seg, ter, qua, qui, sex, sab, dom).")
    lines.append("Se possível, reutilize ingredientes para reduzir custos.")
    return "\n".join(lines) + "\n"


def convert_meal_plan(user_id: int, iso_week: str, requested_calories: Optional[int],
                      payload: Dict[str, Any]) -> Optional[MealPlan]:
    """
    Reconcile the model's meals into a MealPlan.

    Meals with an unknown day or meal type, or no title, are skipped one by
    one. Returns None when nothing survives.
    """
    items = []
    for meal in dict_items(payload.get("meals")):
        day = normalize_meal_day(meal.get("day"))
        meal_type = normalize_meal_type(meal.get("mealType") or meal.get("meal_type"))
        title = clean_text(meal.get("title"), max_length=TITLE_MAX_LENGTH)
        if day is None or meal_type is None or not title:
            logger.debug(f"Skipping meal: day={meal.get('day')!r}, type={meal.get('mealType')!r}")
            continue
        items.append(MealItem(
            day_of_week=day,
            meal_type=meal_type,
            title=title,
            estimated_cost=round_money(meal.get("estimatedCost") or meal.get("estimated_cost")),
            ingredients=clean_string_list(meal.get("ingredients")),
            instructions=clean_text(meal.get("instructions")),
        ))

    if not items:
        return None

    calorie_goal = to_int(payload.get("calorieGoal"))
    if not calorie_goal or calorie_goal <= 0:
        calorie_goal = requested_calories if requested_calories and requested_calories > 0 else DEFAULT_CALORIE_GOAL

    estimated_cost = round_money(payload.get("estimatedCost"))
    if estimated_cost <= 0:
        estimated_cost = round_money(len(items) * FALLBACK_COST_PER_MEAL)

    return MealPlan(
        user_id=user_id,
        iso_week=iso_week,
        calorie_goal=calorie_goal,
        estimated_cost=estimated_cost,
        generated_by_ai=True,
        items=items,
    )


_BREAKFASTS = (
    "Iogurte natural com granola e frutas",
    "Ovos mexidos com torradas integrais",
    "Vitamina de banana com aveia",
)
_LUNCHES = (
    "Peito de frango grelhado com legumes assados",
    "Tilápia ao forno com salada de quinoa",
    "Carne magra ensopada com batata-doce",
    "Arroz integral com feijão e legumes salteados",
)
_DINNERS = (
    "Sopa de legumes com torradas integrais",
    "Omelete de espinafre e queijo branco",
    "Macarrão integral ao pesto com frango desfiado",
)

# meal type -> (titles, cost, ingredients, instructions)
_HEURISTIC_MEALS = (
    ("cafe", _BREAKFASTS, 12.0,
     ["Iogurte natural", "Granola", "Frutas da estação"],
     "Monte o bowl com iogurte, adicione a granola e finalize com frutas frescas."),
    ("almoco", _LUNCHES, 18.0,
     ["Proteína magra", "Legumes variados", "Azeite"],
     "Tempere a proteína e os legumes com azeite, asse até dourar e sirva quente."),
    ("janta", _DINNERS, 20.0,
     ["Legumes frescos", "Caldo de legumes", "Pão integral"],
     "Cozinhe os legumes no caldo até ficarem macios e sirva com torradas integrais."),
)


def heuristic_meal_plan(user_id: int, iso_week: str, requested_calories: Optional[int] = None) -> MealPlan:
    """Seven days x breakfast/lunch/dinner from rotating title lists: always 21 items."""
    items = []
    for index, day in enumerate(MEAL_DAYS):
        for meal_type, titles, cost, ingredients, instructions in _HEURISTIC_MEALS:
            items.append(MealItem(
                day_of_week=day,
                meal_type=meal_type,
                title=titles[index % len(titles)],
                estimated_cost=cost,
                ingredients=list(ingredients),
                instructions=instructions,
            ))
    calorie_goal = requested_calories if requested_calories and requested_calories > 0 else DEFAULT_CALORIE_GOAL
    return MealPlan(
        user_id=user_id,
        iso_week=iso_week,
        calorie_goal=calorie_goal,
        estimated_cost=HEURISTIC_PLAN_COST,
        generated_by_ai=False,
        items=items,
    )


class MealPlanService:
    """Generates, stores and loads weekly meal plans."""

    def __init__(self, db: Session, provider: Optional[LLMProvider], ledger: TokenUsageLedger,
                 logger: Optional[logging.Logger] = None,
                 timeout: float = config.MEAL_PLAN_TIMEOUT_SECONDS):
        self.db = db
        self.provider = provider
        self.ledger = ledger
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def load(self, user_id: int, iso_week: str) -> Optional[MealPlan]:
        return (
            self.db.query(MealPlan)
            .options(selectinload(MealPlan.items))
            .filter(MealPlan.user_id == user_id, MealPlan.iso_week == iso_week)
            .first()
        )

    def generate(self, user: User, week: Optional[str] = None, options: Optional[Dict[str, Any]] = None,
                 cancel_event: Optional[threading.Event] = None) -> MealPlan:
        """
        Build and store the plan for ``week`` (default: current ISO week).

        Raises:
            InvalidISOWeek: malformed week
        """
        options = options or {}
        year, week_number, iso_week = resolve_iso_week(week)
        requested_calories = options.get("calorie_goal")

        plan, result = None, None
        if self.provider is not None:
            try:
                result = self._request_plan(user, iso_week, year, week_number, options, cancel_event)
                plan = convert_meal_plan(
                    user.id, iso_week, requested_calories, parse_json_payload(result.text, "meals")
                )
                if plan is None:
                    raise AIParseError("AI response has no valid meals")
            except AIClientError as e:
                self.logger.warning(f"Gemini meal plan failed for user_id={user.id}: {type(e).__name__}: {e}")
                plan = None

        if plan is None:
            self.logger.info(f"Using heuristic meal plan for user_id={user.id}, week={iso_week}")
            plan = heuristic_meal_plan(user.id, iso_week, requested_calories)

        self._replace(plan)

        if result is not None:
            # a completed call is billed even when its output was unusable
            metadata = {
                "iso_week": iso_week,
                "items": len(plan.items),
                "calorie_goal": plan.calorie_goal,
                "estimated_cost": plan.estimated_cost,
                "model": result.model,
            }
            if not plan.generated_by_ai:
                metadata["parse_error"] = True
            self.ledger.record(self.db, user.id, "meal_plan", result.usage, metadata)

        return self.load(user.id, iso_week)

    def _request_plan(self, user: User, iso_week: str, year: int, week: int,
                      options: Dict[str, Any],
                      cancel_event: Optional[threading.Event]) -> GenerationResult:
        start = iso_week_start(year, week)
        end = start + timedelta(days=7)
        currency, _, language = user_preferences(user)

        prompt = build_meal_plan_prompt(
            user.name, iso_week, start, currency, language, options,
            expenses=expense_service.recent_expenses(self.db, user.id, limit=12),
            items=expense_service.recent_items(self.db, user.id, limit=20),
            categories=expense_service.top_categories(self.db, user.id, start, end),
        )
        return self.provider.generate_content(
            GenerateContentRequest.from_parts(ContentPart.text_part(prompt)),
            timeout=self.timeout,
            cancel_event=cancel_event,
        )

    def _replace(self, plan: MealPlan):
        with atomic(self.db):
            stale = (
                self.db.query(MealPlan)
                .filter(MealPlan.user_id == plan.user_id, MealPlan.iso_week == plan.iso_week)
                .all()
            )
            for old in stale:
                self.db.delete(old)
            # deletes must hit the table before the insert or the (user, week) constraint trips
            self.db.flush()
            self.db.add(plan)
