"""
Assistant Domain Entities
=========================

Value objects and prompt builders for reply composition and sentiment
classification.

The assistant answers in Portuguese, so prompts and canned replies are
Portuguese; the internal sentiment/urgency vocabulary is English.
"""

import json
import math
from dataclasses import dataclass
from typing import List

from config import Sentiment, Urgency
from knowledge.domain import KnowledgeEntry, RankedEntry


# Returned when the corpus is empty and the completion provider fails
TEMPORARILY_UNAVAILABLE_MESSAGE = (
    "Estou tendo dificuldades para responder agora. "
    "Por favor, tente novamente em alguns momentos."
)

# Returned when composition itself breaks
CRITICAL_FAILURE_MESSAGE = "Desculpe, estou tendo dificuldades para responder no momento."

EXCERPT_LENGTH = 200
MAX_LISTED_SUBJECTS = 3


@dataclass(frozen=True)
class ComposeOptions:
    """Bot configuration values consumed by reply composition."""
    system_prompt: str
    fallback_message: str
    max_tokens: int


@dataclass(frozen=True)
class SentimentResult:
    """
    Sentiment and urgency of an inbound message.

    Values use the internal vocabulary; confidence is within [0, 1].
    """
    sentiment: str
    urgency: str
    confidence: float

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0 and 1")

    @classmethod
    def fallback(cls) -> "SentimentResult":
        """Neutral/medium result with zero confidence."""
        return cls(sentiment=Sentiment.NEUTRAL, urgency=Urgency.MEDIUM, confidence=0.0)


class ResponsePromptBuilder:
    """
    Builds the system instruction and canned replies for composition.

    All reply wording lives here.
    """

    RANKED_HEADER = "\n\n📚 Informações Relevantes da Base de Conhecimento:\n\n"
    CORPUS_HEADER = "\n\n📚 Base de Conhecimento Disponível:\n\n"
    ANSWER_INSTRUCTION = (
        "\n\nBaseando-se nas informações acima, responda a pergunta do usuário "
        "de forma clara, útil e em português."
    )

    @classmethod
    def ranked_context(cls, ranked: List[RankedEntry]) -> str:
        """Context block listing ranked entries with their relevance."""
        context = cls.RANKED_HEADER
        for index, entry in enumerate(ranked, 1):
            context += (
                f"{index}. **{entry.subject}** ({entry.relevance_percent:.0f}% relevante):\n"
                f"{entry.information}\n\n"
            )
        return context

    @classmethod
    def corpus_context(cls, corpus: List[KnowledgeEntry]) -> str:
        """Context block listing the full corpus unranked."""
        context = cls.CORPUS_HEADER
        for index, entry in enumerate(corpus, 1):
            context += f"{index}. **{entry.subject}**:\n{entry.information}\n\n"
        return context

    @classmethod
    def system_instruction(cls, system_prompt: str, context: str) -> str:
        return f"{system_prompt}{context}{cls.ANSWER_INSTRUCTION}"

    @staticmethod
    def quote_entry(entry: KnowledgeEntry) -> str:
        """Verbatim answer from one knowledge entry."""
        return (
            f"📚 Conforme nossa base de conhecimento sobre \"{entry.subject}\":\n\n"
            f"{entry.information}"
        )

    @staticmethod
    def list_subjects(corpus: List[KnowledgeEntry]) -> str:
        """Overview of the first few subjects with short excerpts."""
        parts = []
        for entry in corpus[:MAX_LISTED_SUBJECTS]:
            excerpt = entry.information[:EXCERPT_LENGTH]
            if len(entry.information) > EXCERPT_LENGTH:
                excerpt += "..."
            parts.append(f"📌 **{entry.subject}**:\n{excerpt}")
        return (
            "Não encontrei exatamente sobre esse assunto, mas tenho informações sobre:\n\n"
            + "\n\n".join(parts)
        )


# Localized and English labels -> internal vocabulary
SENTIMENT_LABELS = {
    "positivo": Sentiment.POSITIVE,
    "neutro": Sentiment.NEUTRAL,
    "negativo": Sentiment.NEGATIVE,
    "positive": Sentiment.POSITIVE,
    "neutral": Sentiment.NEUTRAL,
    "negative": Sentiment.NEGATIVE,
}

URGENCY_LABELS = {
    "alta": Urgency.HIGH,
    "média": Urgency.MEDIUM,
    "media": Urgency.MEDIUM,
    "baixa": Urgency.LOW,
    "high": Urgency.HIGH,
    "medium": Urgency.MEDIUM,
    "low": Urgency.LOW,
}


class SentimentPromptBuilder:
    """
    Builds the sentiment instruction and parses the provider's answer.

    Parsing never raises; anything unusable becomes the fallback result.
    """

    SYSTEM_PROMPT = """Você é um especialista em análise de sentimentos. Analise o sentimento e urgência de mensagens de suporte em português.
Responda com JSON válido neste formato exato:
{
  "sentiment": "positivo",
  "urgency": "alta",
  "confidence": 0.85
}

Valores permitidos:
- sentiment: positivo, neutro, negativo
- urgency: alta, média, baixa

Diretrizes de urgência:
- alta: Cliente está frustrado, irritado ou enfrentando problemas críticos
- média: Cliente precisa de ajuda mas está paciente
- baixa: Perguntas simples ou consultas gerais"""

    REQUIRED_KEYS = ("sentiment", "urgency", "confidence")

    @staticmethod
    def _strip_code_fence(text: str) -> str:
        text = text.strip()
        if "```json" in text:
            text = text.split("```json")[1].split("```")[0]
        elif text.startswith("```"):
            text = text.split("```")[1]
        return text.strip()

    @classmethod
    def parse(cls, raw: str) -> SentimentResult:
        """Parse provider output into a SentimentResult."""
        try:
            data = json.loads(cls._strip_code_fence(raw or ""))
        except (json.JSONDecodeError, TypeError):
            return SentimentResult.fallback()

        if not isinstance(data, dict) or any(key not in data for key in cls.REQUIRED_KEYS):
            return SentimentResult.fallback()

        confidence = data["confidence"]
        if isinstance(confidence, bool):
            return SentimentResult.fallback()
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            return SentimentResult.fallback()
        if math.isnan(confidence):
            confidence = 0.0

        return SentimentResult(
            sentiment=SENTIMENT_LABELS.get(str(data["sentiment"]).strip().lower(), Sentiment.NEUTRAL),
            urgency=URGENCY_LABELS.get(str(data["urgency"]).strip().lower(), Urgency.MEDIUM),
            confidence=max(0.0, min(1.0, confidence))
        )
