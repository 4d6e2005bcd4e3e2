from __future__ import annotations

import logging
from dataclasses import dataclass

from openai import APIStatusError, OpenAI, OpenAIError

from app.core.config import settings

logger = logging.getLogger(__name__)


class AIGatewayError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ChatReply:
    model: str
    content: str


class AIGatewayClient:
    """
    Thin wrapper around the OpenAI SDK pointed at an OpenAI-compatible gateway.

    Exactly one request is made per call: SDK retries are disabled and no
    timeout beyond the SDK default is configured.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
    ) -> None:
        key = api_key or settings.AI_GATEWAY_API_KEY
        if not key:
            raise AIGatewayError("AI_GATEWAY_API_KEY is not configured")
        self.model = model or settings.AI_SCAN_MODEL
        if not self.model:
            raise AIGatewayError("AI_SCAN_MODEL is not configured")
        self._client = OpenAI(
            api_key=key,
            base_url=base_url or settings.AI_GATEWAY_BASE_URL or None,
            max_retries=0,
        )

    def chat(self, *, system_prompt: str, user_content: str) -> ChatReply:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
            )
        except APIStatusError as exc:
            body = getattr(getattr(exc, "response", None), "text", "") or ""
            logger.error("AI gateway error: %s %s", exc.status_code, body[:500])
            raise AIGatewayError(f"AI gateway error: {exc.status_code}", status_code=exc.status_code) from exc
        except OpenAIError as exc:
            raise AIGatewayError(str(exc) or "AI gateway request failed") from exc

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        return ChatReply(model=response.model or self.model, content=content)
