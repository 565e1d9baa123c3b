"""Newsletter subscription through Mailchimp."""
import logging
from typing import Any, Dict
import httpx
from storefront.errors import NotConfiguredError, UpstreamError

logger = logging.getLogger(__name__)

ALREADY_SUBSCRIBED = "You're already subscribed!"
SUBSCRIBED = "Successfully subscribed!"


class MailchimpClient:
    """Adds list members with the Marketing API."""

    def __init__(self, client: httpx.AsyncClient, api_key: str, list_id: str, server_prefix: str):
        if not api_key or not list_id or not server_prefix:
            raise NotConfiguredError("Server configuration error")
        self.client = client
        self.api_key = api_key
        self.list_id = list_id
        self.url = f"https://{server_prefix}.api.mailchimp.com/3.0/lists/{list_id}/members"

    async def subscribe(self, email: str) -> Dict[str, Any]:
        """
        Subscribe an email address.

        An address that is already a member counts as success.

        Returns:
            {"message": ..., "id": member id or None}

        Raises:
            UpstreamError: If Mailchimp rejects the request
        """
        logger.info("Subscribing email to Mailchimp list %s", self.list_id)
        try:
            response = await self.client.post(
                self.url,
                json={"email_address": email, "status": "subscribed"},
                auth=("anystring", self.api_key),
            )
        except httpx.HTTPError as e:
            raise UpstreamError("An unexpected error occurred") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            if data.get("title") == "Member Exists":
                return {"message": ALREADY_SUBSCRIBED, "id": None}
            logger.error("Mailchimp error: %s", data)
            raise UpstreamError(data.get("detail") or "Failed to subscribe", status_code=response.status_code)

        logger.info("Successfully subscribed member %s", data.get("id"))
        return {"message": SUBSCRIBED, "id": data.get("id")}
