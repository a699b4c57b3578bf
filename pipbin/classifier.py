"""
Client for the external language-classification service.
"""
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from pipbin.errors import ClassifierRequestFailure, ClassifierUnavailable
from pipbin.models import ClassifierResponse

logger = logging.getLogger(__name__)

UNKNOWN_LANGUAGE = "unknown"

HEALTH_CHECK_SNIPPET = 'package main\n\nimport "fmt"\n\nfunc main() {\n\tfmt.Println("Hello, World!")\n}'
HEALTH_CHECK_LANGUAGE = "Go"


class LanguageClassifier:
    """Guesses the language of a text sample by POSTing it to ``{base_url}/detect``."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=None)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def classify(self, sample: bytes) -> str:
        """
        Detect the language of ``sample``.

        Returns:
            The language name, or UNKNOWN_LANGUAGE when the service gives none

        Raises:
            ClassifierRequestFailure: On network errors, error statuses or malformed bodies
        """
        try:
            response = await self.client.post(
                f"{self.base_url}/detect",
                content=sample,
                headers={"Content-Type": "text/plain"},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise ClassifierRequestFailure(f"classifier request failed: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise ClassifierRequestFailure(f"classifier returned malformed JSON: {e}") from e

        if not isinstance(body, dict):
            return UNKNOWN_LANGUAGE
        try:
            result = ClassifierResponse.model_validate(body, strict=True)
        except ValidationError:
            return UNKNOWN_LANGUAGE
        return result.language or UNKNOWN_LANGUAGE

    async def health_check(self) -> None:
        """
        Classify a known Go snippet and expect "Go" back.

        Raises:
            ClassifierUnavailable: If the service is unreachable or answers wrongly
        """
        try:
            language = await self.classify(HEALTH_CHECK_SNIPPET.encode())
        except ClassifierRequestFailure as e:
            raise ClassifierUnavailable(str(e)) from e

        if language != HEALTH_CHECK_LANGUAGE:
            raise ClassifierUnavailable(f"unexpected language: {language}")
        logger.info(f"Language detector healthy at {self.base_url}")
