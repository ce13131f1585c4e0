"""HTTP adapter for the moderation subsystem."""

import logging

import httpx

from starpath.config.settings import Settings, get_settings
from starpath.middleware.error_handlers import ExternalServiceError


logger = logging.getLogger(__name__)


class HttpModerationGateway:
    """Reads the review outcome of an audio submission.

    Only ``status == "approved"`` counts as approved. A submission the
    moderation service does not know about (404) is not approved.
    """

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings or get_settings()
        self.transport = transport

    async def is_submission_approved(self, child_id: str, content_item_id: str) -> bool:
        base_url = self.settings.MODERATION_API_URL
        if not base_url:
            raise ExternalServiceError("Moderation", "MODERATION_API_URL is not configured")

        url = f"{base_url.rstrip('/')}/submissions/{child_id}/{content_item_id}"
        try:
            async with httpx.AsyncClient(timeout=self.settings.MODERATION_API_TIMEOUT, transport=self.transport) as client:
                response = await client.get(url)
                if response.status_code == httpx.codes.NOT_FOUND:
                    return False
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.exception(f"Moderation lookup failed for child {child_id}, item {content_item_id}")
            raise ExternalServiceError("Moderation", str(e)) from e

        return isinstance(data, dict) and data.get("status") == "approved"
