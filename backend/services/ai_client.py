"""
Chat-completions client for the text-extraction / verification model.

Uses the OpenAI SDK against any OpenAI-compatible endpoint.

Auth, in order of preference:
    OPENAI_API_KEY            → used directly as api_key
    FOUNDRY_ENDPOINT +
    MANAGED_IDENTITY_CLIENT_ID → ManagedIdentityCredential token used as api_key
                                 Scope: https://cognitiveservices.azure.com/.default

Every failure (SDK, credential, empty content) is raised as UpstreamError so
adapters can fall back to mock data.
"""

import logging

from azure.core.exceptions import AzureError
from azure.identity import ManagedIdentityCredential
from openai import OpenAI, OpenAIError

from config import AI_AUTH_API_KEY, Settings
from errors import UpstreamError

logger = logging.getLogger(__name__)

FOUNDRY_AUTH_SCOPE = "https://cognitiveservices.azure.com/.default"


class AIClient:
    def __init__(self, settings: Settings):
        self._settings = settings
        self._client: OpenAI | None = None

    def _get_token(self) -> str:
        credential = ManagedIdentityCredential(client_id=self._settings.managed_identity_client_id)
        return credential.get_token(FOUNDRY_AUTH_SCOPE).token

    def _get_client(self) -> OpenAI:
        """Return cached OpenAI client, creating on first call.

        Azure MSI tokens last ~24h; for long-running processes a restart
        or token-refresh wrapper would be needed.
        """
        if self._client is None:
            s = self._settings
            auth = s.ai_auth
            if auth is None:
                raise UpstreamError("AI endpoint is not configured")
            if auth == AI_AUTH_API_KEY:
                self._client = OpenAI(
                    api_key=s.openai_api_key,
                    base_url=s.openai_base_url,
                    timeout=s.http_timeout_seconds,
                    max_retries=0,
                )
            else:
                self._client = OpenAI(
                    base_url=s.foundry_endpoint,
                    api_key=self._get_token(),
                    timeout=s.http_timeout_seconds,
                    max_retries=0,
                )
        return self._client

    def complete(
        self,
        messages: list[dict],
        temperature: float = 0.2,
        max_tokens: int = 300,
    ) -> str:
        """
        Call the model with chat messages, return assistant response text.
        """
        try:
            completion = self._get_client().chat.completions.create(
                model=self._settings.ai_model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except (OpenAIError, AzureError) as e:
            raise UpstreamError(f"AI request failed: {e}") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise UpstreamError("Model returned empty response (no content)")
        return content
