"""OpenAI-compatible API client wrapper with error handling."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from docqa import config
from docqa.errors import AnswerServiceError, EmbeddingServiceError, ServiceError

logger = structlog.get_logger()


class EmbeddingItem(BaseModel):
    embedding: List[float]


class EmbeddingEnvelope(BaseModel):
    data: List[EmbeddingItem]


class ChatMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = None


class ChatChoice(BaseModel):
    message: ChatMessage


class ChatEnvelope(BaseModel):
    choices: List[ChatChoice]


class ResponseStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    MALFORMED = "malformed"


@dataclass
class ParsedResponse:
    """Outcome of parsing a provider response body.

    ``value`` is set only when ``status`` is OK; ``detail`` explains
    EMPTY and MALFORMED outcomes.
    """

    status: ResponseStatus
    value: Any = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ResponseStatus.OK


def parse_embedding_response(payload: Any) -> ParsedResponse:
    """Extract the first embedding vector from an /embeddings response body."""
    try:
        envelope = EmbeddingEnvelope.model_validate(payload)
    except ValidationError as e:
        return ParsedResponse(ResponseStatus.MALFORMED, detail=str(e))

    if not envelope.data:
        return ParsedResponse(ResponseStatus.EMPTY, detail="response contained no embeddings")

    vector = envelope.data[0].embedding
    if not vector:
        return ParsedResponse(ResponseStatus.EMPTY, detail="first embedding is empty")

    return ParsedResponse(ResponseStatus.OK, value=vector)


def parse_chat_response(payload: Any) -> ParsedResponse:
    """Extract the first choice's message content from a /chat/completions body."""
    try:
        envelope = ChatEnvelope.model_validate(payload)
    except ValidationError as e:
        return ParsedResponse(ResponseStatus.MALFORMED, detail=str(e))

    if not envelope.choices:
        return ParsedResponse(ResponseStatus.EMPTY, detail="response contained no choices")

    content = envelope.choices[0].message.content
    if not content:
        return ParsedResponse(ResponseStatus.EMPTY, detail="first choice has no content")

    return ParsedResponse(ResponseStatus.OK, value=content)


def extract_error_message(response: httpx.Response, service: str) -> str:
    """Best human-readable message for a failed response.

    Prefers the provider's ``error.message``, then the raw body, then a
    generic ``"<service> error (<status>)"``.
    """
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error

    raw = response.text.strip()
    if raw:
        return raw

    return f"{service} error ({response.status_code})"


class OpenAIClient:
    """Async client for the OpenAI embeddings and chat completion endpoints."""

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_key: Bearer token (defaults to OPENAI_API_KEY from the environment)
            base_url: API base URL (defaults to config.OPENAI_BASE_URL)
            timeout: Per-request timeout in seconds (defaults to config.REQUEST_TIMEOUT)
            transport: Optional httpx transport, used by tests to fake the API

        Raises:
            ConfigurationError: If no api_key is given and OPENAI_API_KEY is unset
        """
        self.api_key = api_key or config.require_api_key()
        self.base_url = (base_url or config.OPENAI_BASE_URL).rstrip("/")
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        error_cls: Type[ServiceError],
    ) -> Any:
        """POST a JSON payload and return the decoded JSON body.

        Raises:
            ServiceError: error_cls on timeout, transport failure, non-2xx
                status or a body that is not JSON
        """
        url = f"{self.base_url}{path}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(url, json=payload, headers=self._headers())

        except httpx.TimeoutException as e:
            logger.error("openai_timeout", url=url, timeout=self.timeout, error=str(e))
            raise error_cls(
                f"{error_cls.service} request timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            logger.error("openai_transport_error", url=url, error=str(e))
            raise error_cls(f"{error_cls.service} request failed: {e}") from e

        if not response.is_success:
            message = extract_error_message(response, error_cls.service)
            logger.error(
                "openai_http_error",
                url=url,
                status_code=response.status_code,
                error=message,
            )
            raise error_cls(message, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            logger.error("openai_invalid_json", url=url, status_code=response.status_code)
            raise error_cls(
                f"{error_cls.service} returned a non-JSON body: {response.text[:200]}",
                response.status_code,
            ) from e

    async def embeddings(self, text: str, model: str = None) -> List[float]:
        """Embed a single text.

        Args:
            text: Text to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            The embedding vector

        Raises:
            EmbeddingServiceError: On API, transport or parsing errors
        """
        model = model or config.EMBEDDING_MODEL

        logger.debug("openai_embedding_request", model=model, input_length=len(text))

        data = await self._post(
            "/embeddings",
            {"model": model, "input": text},
            EmbeddingServiceError,
        )

        parsed = parse_embedding_response(data)
        if not parsed.ok:
            logger.error(
                "openai_embedding_unusable",
                status=parsed.status.value,
                detail=parsed.detail,
            )
            raise EmbeddingServiceError(
                f"Unusable embeddings response ({parsed.status.value}): {parsed.detail}"
            )

        logger.debug("openai_embedding_response", model=model, dimension=len(parsed.value))

        return parsed.value

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)
            temperature: Sampling temperature (provider default when None)

        Returns:
            The assistant message content; "" if the completion was empty

        Raises:
            AnswerServiceError: On API, transport or parsing errors
        """
        model = model or config.CHAT_MODEL

        payload: Dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature

        logger.info("openai_chat_request", model=model, message_count=len(messages))

        data = await self._post("/chat/completions", payload, AnswerServiceError)

        parsed = parse_chat_response(data)
        if parsed.status is ResponseStatus.MALFORMED:
            logger.error("openai_chat_malformed", detail=parsed.detail)
            raise AnswerServiceError(f"Malformed chat response: {parsed.detail}")

        if parsed.status is ResponseStatus.EMPTY:
            logger.warning("openai_chat_empty", model=model, detail=parsed.detail)
            return ""

        logger.info("openai_chat_response", model=model, response_length=len(parsed.value))

        return parsed.value


_client_instance: Optional[OpenAIClient] = None


def get_client() -> OpenAIClient:
    """Get a singleton client built from the environment.

    Raises:
        ConfigurationError: If OPENAI_API_KEY is unset
    """
    global _client_instance
    if _client_instance is None:
        _client_instance = OpenAIClient()
    return _client_instance
