"""Push a rendered email into Klaviyo as a template and, optionally, a draft campaign."""

import logging

from rmadesk.schemas.klaviyo import KlaviyoPushRequest, KlaviyoPushResponse
from rmadesk.services.errors import (
    ExternalServiceError,
    IntegrationNotConfiguredError,
    RmaValidationError,
)
from rmadesk.services.integrations.klaviyo import KlaviyoClient, KlaviyoError

logger = logging.getLogger(__name__)


def push_to_klaviyo(
    data: KlaviyoPushRequest, client: KlaviyoClient | None = None
) -> KlaviyoPushResponse:
    client = client or KlaviyoClient()
    if not client.is_configured:
        raise IntegrationNotConfiguredError("Klaviyo")
    if data.create_campaign:
        missing = client.missing_sender_config()
        if missing:
            raise RmaValidationError(
                f"Campaign creation requires sender config: {', '.join(missing)}"
            )

    name = data.campaign_name or data.subject[:100]
    try:
        template_id = client.create_template(name, data.html_body, data.plain_text)
        if not data.create_campaign:
            return KlaviyoPushResponse(
                template_id=template_id,
                message="Template created in Klaviyo. Attach it to a campaign in the Klaviyo dashboard.",
            )
        campaign = client.create_campaign(name, data.subject, data.preheader)
        if campaign.message_id:
            client.assign_template(campaign.message_id, template_id)
    except KlaviyoError as exc:
        logger.warning("Klaviyo push failed: %s", exc)
        raise ExternalServiceError("Klaviyo", str(exc)) from exc

    return KlaviyoPushResponse(
        template_id=template_id,
        campaign_id=campaign.campaign_id,
        message_id=campaign.message_id,
        message="Template and draft campaign created in Klaviyo.",
    )
