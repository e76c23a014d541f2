"""Enrichment capability: translate and polish an article into a target language."""

from __future__ import annotations

import asyncio
import re
from typing import Any, Dict, Mapping, NamedTuple, Optional, Protocol

import httpx

from config.settings import ENRICHMENT_CONFIG
from src.errors import EnrichmentError
from src.utils.logger import StructuredLogMixin, get_logger

FALLBACK_LANGUAGE = "en"

POLISH_PROMPTS: Dict[str, Dict[str, str]] = {
    "title": {
        "zh": "请将以下新闻标题润色得更加吸引人和专业，保持原意不变，适合服装行业读者。请只返回润色后的标题，不要添加任何解释或其他内容：",
        "en": "Please polish the following news title to make it more attractive and professional while maintaining the original meaning, suitable for fashion industry readers. Return only the polished title without any explanation or additional content:",
        "ja": "以下のニュースタイトルをより魅力的で専門的に磨き上げ、元の意味を保ちながら、ファッション業界の読者に適したものにしてください。説明や追加内容なしで、磨き上げられたタイトルのみを返してください：",
        "es": "Por favor, pule el siguiente titular de noticias para hacerlo más atractivo y profesional manteniendo el significado original, adecuado para lectores de la industria de la moda. Devuelve solo el titular pulido sin explicación o contenido adicional:",
        "fr": "Veuillez polir le titre de nouvelles suivant pour le rendre plus attrayant et professionnel tout en conservant le sens original, adapté aux lecteurs de l'industrie de la mode. Retournez uniquement le titre poli sans explication ou contenu supplémentaire:",
        "de": "Bitte polieren Sie die folgende Nachrichtenschlagzeile, um sie attraktiver und professioneller zu machen, während Sie die ursprüngliche Bedeutung beibehalten, geeignet für Leser der Modebranche. Geben Sie nur die polierte Schlagzeile ohne Erklärung oder zusätzlichen Inhalt zurück:",
    },
    "content": {
        "zh": "请将以下新闻内容润色，使其更加专业、流畅和吸引人，保持事实准确性，适合服装行业专业人士阅读。请只返回润色后的内容，不要添加任何解释或其他内容：",
        "en": "Please polish the following news content to make it more professional, fluent and engaging while maintaining factual accuracy, suitable for fashion industry professionals. Return only the polished content without any explanation or additional content:",
        "ja": "以下のニュース内容をより専門的で流暢で魅力的に磨き上げ、事実の正確性を保ちながら、ファッション業界の専門家の読書に適したものにしてください。説明や追加内容なしで、磨き上げられた内容のみを返してください：",
        "es": "Por favor, pule el siguiente contenido de noticias para hacerlo más profesional, fluido y atractivo manteniendo la precisión factual, adecuado para profesionales de la industria de la moda. Devuelve solo el contenido pulido sin explicación o contenido adicional:",
        "fr": "Veuillez polir le contenu de nouvelles suivant pour le rendre plus professionnel, fluide et engageant tout en maintenant la précision factuelle, adapté aux professionnels de l'industrie de la mode. Retournez uniquement le contenu poli sans explication ou contenu supplémentaire:",
        "de": "Bitte polieren Sie den folgenden Nachrichteninhalt, um ihn professioneller, fließender und ansprechender zu machen, während Sie die sachliche Genauigkeit beibehalten, geeignet für Fachleute der Modebranche. Geben Sie nur den polierten Inhalt ohne Erklärung oder zusätzlichen Inhalt zurück:",
    },
    "summary": {
        "zh": "请为以下新闻内容写一个简洁、准确的摘要，突出关键信息，适合服装行业读者快速了解。请只返回摘要内容，不要添加任何解释或其他内容：",
        "en": "Please write a concise and accurate summary for the following news content, highlighting key information, suitable for fashion industry readers to quickly understand. Return only the summary content without any explanation or additional content:",
        "ja": "以下のニュース内容について、重要な情報を強調し、ファッション業界の読者が素早く理解できるような簡潔で正確な要約を書いてください。説明や追加内容なしで、要約内容のみを返してください：",
        "es": "Por favor, escriba un resumen conciso y preciso para el siguiente contenido de noticias, destacando información clave, adecuado para que los lectores de la industria de la moda entiendan rápidamente. Devuelve solo el contenido del resumen sin explicación o contenido adicional:",
        "fr": "Veuillez rédiger un résumé concis et précis pour le contenu de nouvelles suivant, en soulignant les informations clés, adapté aux lecteurs de l'industrie de la mode pour une compréhension rapide. Retournez uniquement le contenu du résumé sans explication ou contenu supplémentaire:",
        "de": "Bitte schreiben Sie eine prägnante und genaue Zusammenfassung für den folgenden Nachrichteninhalt, die wichtige Informationen hervorhebt und für Leser der Modebranche geeignet ist, um schnell zu verstehen. Geben Sie nur den Zusammenfassungsinhalt ohne Erklärung oder zusätzlichen Inhalt zurück:",
    },
}

TRANSLATE_PROMPTS: Dict[str, str] = {
    "zh": "请将以下文本翻译成中文，保持专业性和准确性，适合服装行业：",
    "en": "Please translate the following text into English, maintaining professionalism and accuracy, suitable for the fashion industry:",
    "ja": "以下のテキストを日本語に翻訳し、専門性と正確性を保ち、ファッション業界に適したものにしてください：",
    "es": "Por favor, traduzca el siguiente texto al español, manteniendo la profesionalidad y precisión, adecuado para la industria de la moda:",
    "fr": "Veuillez traduire le texte suivant en français, en maintenant le professionnalisme et la précision, adapté à l'industrie de la mode:",
    "de": "Bitte übersetzen Sie den folgenden Text ins Deutsche und behalten Sie dabei Professionalität und Genauigkeit bei, geeignet für die Modebranche:",
}

_PREFIX_RE = re.compile(
    r"^(润色后的标题[:：]|润色后的内容[:：]|润色后的摘要[:：]|以下是润色后的[^:：\n]*[:：]?"
    r"|以下是[^:：\n]*[:：]|这是[^:：\n]*[:：]|润色结果[:：]"
    r"|here is the polished[^:\n]*:|the polished[^:\n]*:|polished[^:\n]*:)\s*",
    re.IGNORECASE,
)
_SUFFIX_RE = re.compile(r"\s*(希望这个润色版本|这个版本更加|如有需要可以进一步调整).*$", re.DOTALL)
_QUOTE_PAIRS = {'"': '"', "'": "'", "「": "」", "『": "』", "“": "”"}


class PolishedText(NamedTuple):
    title: str
    body: str
    summary: str


class Polisher(Protocol):
    async def polish(
        self,
        title: str,
        body: str,
        summary: str,
        target_language: str,
        *,
        source_language: Optional[str] = None,
    ) -> PolishedText: ...


def clean_ai_response(response: str) -> str:
    """Strip the preambles, sign-offs and wrapping quotes models like to add."""
    original = (response or "").strip()
    cleaned = _PREFIX_RE.sub("", original, count=1).strip()
    cleaned = _SUFFIX_RE.sub("", cleaned).strip()
    if len(cleaned) >= 2 and _QUOTE_PAIRS.get(cleaned[0]) == cleaned[-1]:
        cleaned = cleaned[1:-1].strip()
    if len(cleaned) < 5:
        return original
    return cleaned


class PassthroughPolisher:
    """Returns the crawled text unchanged; used when no model is configured."""

    async def polish(
        self,
        title: str,
        body: str,
        summary: str,
        target_language: str,
        *,
        source_language: Optional[str] = None,
    ) -> PolishedText:
        return PolishedText(title, body, summary)


class ChatCompletionPolisher(StructuredLogMixin):
    """
    OpenAI-compatible ``/chat/completions`` client.

    When the target language differs from the source language the text is
    translated first and the translation is then polished. Title, body and
    summary of one article are processed concurrently.
    """

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = dict(config or ENRICHMENT_CONFIG)
        self.api_url = self.config["api_url"]
        self.api_key = self.config.get("api_key")
        self.model = self.config.get("model", "deepseek-chat")
        self.source_language = self.config.get("source_language", "zh")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=float(self.config.get("request_timeout_seconds", 60.0))
        )
        self.module_logger = get_logger().create_module_logger("enrichment.polisher")
        self._log_context: Dict[str, Any] = {"model": self.model}

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def polish(
        self,
        title: str,
        body: str,
        summary: str,
        target_language: str,
        *,
        source_language: Optional[str] = None,
    ) -> PolishedText:
        source_language = source_language or self.source_language
        tasks = [
            asyncio.create_task(self._process(text, kind, target_language, source_language))
            for text, kind in ((title, "title"), (body, "content"), (summary, "summary"))
        ]
        try:
            polished_title, polished_body, polished_summary = await asyncio.gather(*tasks)
        except BaseException:
            # no model call for this article may outlive the failed one
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return PolishedText(polished_title, polished_body, polished_summary)

    async def _process(
        self, text: str, kind: str, target_language: str, source_language: str
    ) -> str:
        if not text.strip():
            return text
        if target_language != source_language:
            text = await self._complete(self._translate_prompt(target_language), text)
        return await self._complete(self._polish_prompt(kind, target_language), text)

    @staticmethod
    def _polish_prompt(kind: str, language: str) -> str:
        prompts = POLISH_PROMPTS[kind]
        return prompts.get(language, prompts[FALLBACK_LANGUAGE])

    @staticmethod
    def _translate_prompt(language: str) -> str:
        return TRANSLATE_PROMPTS.get(language, TRANSLATE_PROMPTS[FALLBACK_LANGUAGE])

    async def _complete(self, instruction: str, text: str) -> str:
        if not self.api_key:
            raise EnrichmentError("no API key configured for the enrichment model")
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": f"{instruction}\n\n{text}"}],
            "max_tokens": int(self.config.get("max_tokens", 2000)),
            "temperature": float(self.config.get("temperature", 0.7)),
            "stream": False,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            response = await self.client.post(self.api_url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            self._emit_log("warning", "enrichment.request_failed", details={"error": str(exc)})
            raise EnrichmentError(f"enrichment request failed: {exc}") from exc
        if response.status_code >= 400:
            raise EnrichmentError(f"enrichment endpoint returned HTTP {response.status_code}")
        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EnrichmentError(f"unexpected enrichment response: {exc}") from exc
        if not isinstance(content, str) or not content.strip():
            raise EnrichmentError("enrichment response was empty")
        return clean_ai_response(content)


def build_polisher(config: Optional[Mapping[str, Any]] = None) -> Polisher:
    """Polisher for the configured provider; passthrough when no key is set."""
    cfg = dict(config or ENRICHMENT_CONFIG)
    provider = cfg.get("provider", "passthrough")
    if provider == "chat_completions":
        if cfg.get("api_key"):
            return ChatCompletionPolisher(cfg)
        get_logger().create_module_logger("enrichment.polisher").warning(
            {"event": "enrichment.no_api_key", "details": {"provider": provider}}
        )
    return PassthroughPolisher()


__all__ = [
    "ChatCompletionPolisher",
    "PassthroughPolisher",
    "PolishedText",
    "Polisher",
    "build_polisher",
    "clean_ai_response",
]
