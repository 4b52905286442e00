"""Classification of free-text messages through the OpenAI chat API."""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import date, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import redis.asyncio as aioredis
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from tenacity import retry, stop_after_attempt, wait_exponential

from dindin.config import get_settings
from dindin.conversation.normalizer import parse_currency_amount
from dindin.db.kinds import TransactionKind

logger = logging.getLogger(__name__)

_redis_client: aioredis.Redis | None = None
_openai_client: AsyncOpenAI | None = None


class AnalysisKind(str, Enum):
    TRANSACTION = "transaction"
    GOAL = "goal"
    GOAL_INFO = "goal_info"
    UNKNOWN = "unknown"


class GoalAction(str, Enum):
    CREATE = "create"
    CONTRIBUTE = "contribute"
    QUERY = "query"


class MessageAnalysis(BaseModel):
    """Structured reading of one user message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: AnalysisKind = Field(AnalysisKind.UNKNOWN, alias="type")
    transaction_kind: Optional[TransactionKind] = Field(None, alias="transactionType")
    amount: Optional[float] = None
    description: Optional[str] = None
    category: Optional[str] = None
    action: Optional[GoalAction] = None
    title: Optional[str] = None
    target_amount: Optional[float] = Field(None, alias="targetAmount")
    contribution_amount: Optional[float] = Field(None, alias="contributionAmount")
    initial_amount: Optional[float] = Field(None, alias="initialAmount")
    target_date: Optional[date] = Field(None, alias="targetDate")
    info_type: Optional[str] = Field(None, alias="infoType")
    value: Any = None

    @field_validator("amount", "target_amount", "contribution_amount", "initial_amount", mode="before")
    def coerce_amount(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_currency_amount(value)
        return value

    @field_validator("transaction_kind", "action", "target_date", mode="before")
    def empty_to_none(cls, value: Any) -> Any:
        if value in ("", None):
            return None
        return value

    @property
    def is_transaction(self) -> bool:
        return (
            self.kind is AnalysisKind.TRANSACTION
            and self.transaction_kind is not None
            and self.amount is not None
            and self.amount > 0
        )


UNKNOWN_ANALYSIS = MessageAnalysis(kind=AnalysisKind.UNKNOWN)


def build_system_prompt(today: date) -> str:
    formatted = today.strftime("%d/%m/%Y")
    tomorrow = (today + timedelta(days=1)).isoformat()
    next_week = (today + timedelta(days=7)).isoformat()
    return (
        "Você é um assistente financeiro especializado em ajudar com o registro de transações "
        "financeiras e metas financeiras.\n\n"
        f"IMPORTANTE: A DATA ATUAL É {formatted} ({today.isoformat()}). Utilize esta data como "
        "referência para todos os cálculos de data.\n\n"
        "## CASO 1: TRANSAÇÃO FINANCEIRA\n"
        "Identifique se é receita ou despesa, o valor, a descrição e a categoria mais adequada.\n"
        '{"type": "transaction", "transactionType": "income"/"expense", "amount": número, '
        '"description": "texto", "category": "nome da categoria"}\n\n'
        "## CASO 2: META FINANCEIRA\n"
        "Criar meta, adicionar valor a uma meta existente ou consultar o progresso.\n"
        '{"type": "goal", "action": "create"/"contribute"/"query", "title": "título da meta", '
        '"targetAmount": número, "contributionAmount": número, "initialAmount": número, '
        '"targetDate": "YYYY-MM-DD"}\n'
        "Exemplos:\n"
        '- "Quero criar uma meta para comprar um celular" -> action=create\n'
        '- "Comprar computador novo até dezembro por 5000 reais" -> action=create\n'
        '- "Adicionar 200 reais na minha meta da viagem" -> action=contribute\n'
        '- "Como está minha meta do carro?" -> action=query\n\n'
        "## CASO 3: CONTINUAÇÃO DE CONVERSA SOBRE META\n"
        "Resposta a uma pergunta sobre o valor total, o valor já guardado ou a data alvo.\n"
        '{"type": "goal_info", "infoType": "target_amount"/"initial_amount"/"target_date", '
        '"value": valor ou data}\n\n'
        "## CASO 4: NENHUM DOS CASOS ACIMA\n"
        '{"type": "unknown"}\n\n'
        f'Se o usuário mencionar "amanhã", use {tomorrow}. Se mencionar "semana que vem", use '
        f"{next_week}. Nunca defina uma data alvo no passado.\n\n"
        "IMPORTANTE: Você deve APENAS retornar o JSON no formato especificado, sem texto adicional."
    )


def parse_analysis(raw: str) -> MessageAnalysis:
    """Turn the raw completion into an analysis, ``unknown`` when it is malformed."""

    try:
        payload = json.loads(raw or "{}")
    except json.JSONDecodeError:
        logger.warning("LLM returned malformed JSON", extra={"step": "parse"})
        return UNKNOWN_ANALYSIS
    if not isinstance(payload, dict):
        return UNKNOWN_ANALYSIS

    try:
        return MessageAnalysis.model_validate(payload)
    except ValidationError:
        logger.warning("LLM response did not match the expected shape", extra={"step": "validate"})
        return UNKNOWN_ANALYSIS


async def _get_redis() -> aioredis.Redis | None:
    """Return a lazily initialised Redis client or ``None`` if unavailable."""

    global _redis_client
    if _redis_client is not None:
        return _redis_client

    try:
        _redis_client = aioredis.from_url(
            get_settings().redis.dsn,
            encoding="utf-8",
            decode_responses=True,
        )
    except (aioredis.RedisError, ValueError):
        logger.warning("Redis unavailable, LLM responses will not be cached")
        _redis_client = None
    return _redis_client


def _resolve_openai_client() -> AsyncOpenAI:
    global _openai_client
    if _openai_client is None:
        settings = get_settings().openai
        _openai_client = AsyncOpenAI(api_key=settings.api_key, base_url=settings.base_url)
    return _openai_client


def _build_cache_key(messages: List[Dict[str, str]]) -> str:
    payload = json.dumps(messages, sort_keys=True, ensure_ascii=False)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"dindin:llm:{digest}"


async def _with_cache(key: str, builder: Callable[[], Awaitable[str]]) -> str:
    redis = await _get_redis()
    if redis is not None:
        try:
            cached = await redis.get(key)
        except aioredis.RedisError:
            logger.warning("Failed to read LLM cache")
            cached = None
        if cached:
            return cached

    result = await builder()
    if redis is not None:
        try:
            await redis.setex(key, get_settings().openai.cache_ttl_seconds, result)
        except aioredis.RedisError:
            logger.warning("Failed to store LLM response in cache")
    return result


@retry(wait=wait_exponential(multiplier=1, min=1, max=10), stop=stop_after_attempt(3), reraise=True)
async def _chat(messages: List[Dict[str, str]]) -> str:
    """Send a conversation to OpenAI and return the assistant response."""

    settings = get_settings().openai
    client = _resolve_openai_client()
    response = await client.chat.completions.create(
        model=settings.model,
        messages=messages,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        response_format={"type": "json_object"},
    )
    return response.choices[0].message.content or "{}"


async def analyze_message(text: str, today: Optional[date] = None) -> MessageAnalysis:
    today = today or date.today()
    messages = [
        {"role": "system", "content": build_system_prompt(today)},
        {"role": "user", "content": text.strip()},
    ]
    raw = await _with_cache(_build_cache_key(messages), lambda: _chat(messages))
    analysis = parse_analysis(raw)
    logger.debug("Message classified", extra={"step": analysis.kind.value})
    return analysis


__all__ = [
    "AnalysisKind",
    "GoalAction",
    "MessageAnalysis",
    "UNKNOWN_ANALYSIS",
    "analyze_message",
    "build_system_prompt",
    "parse_analysis",
]
