"""Process-wide configuration for the storefront backend.

Settings are read from the environment (and SSM for secrets) exactly once,
at process start, by ``load_settings()``. The resulting ``Settings`` object
is passed into every client and service constructor; nothing below the API
layer reads ``os.environ`` directly.

Environment variables:
    ENVIRONMENT              dev / prod (default: dev)
    AWS_DEFAULT_REGION       AWS region for DynamoDB, SSM and SES
    DYNAMODB_TABLE_PREFIX    Table name prefix (default: storefront-{ENVIRONMENT})
    MP_API_BASE_URL          Mercado Pago API base (default: https://api.mercadopago.com)
    MP_ACCESS_TOKEN          Mercado Pago access token (else SSM)
    MP_WEBHOOK_SECRET        Webhook signing secret (else SSM, optional). If SSM fails
                             for any reason other than a missing parameter, webhook
                             deliveries are refused as misconfigured.
    SITE_URL                 Public storefront URL used for back/notification URLs
    STORE_CURRENCY           Currency for checkout items (default: ARS)
    ORDER_NUMBER_PREFIX      Display number prefix (default: AMG)
    EMAIL_FROM               Sender address for confirmation emails
    TEST_EMAIL_TO            Force every confirmation email to this address
    HTTP_TIMEOUT_SECONDS     Outbound HTTP timeout (default: transport default)
"""

import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.services.ssm_service import SSMService, SSMServiceError

logger = logging.getLogger(__name__)

DEFAULT_MP_API_BASE_URL = "https://api.mercadopago.com"
DEFAULT_SITE_URL = "http://localhost:3000"


class Settings(BaseModel):
    """Immutable runtime configuration."""

    model_config = ConfigDict(frozen=True)

    environment: str = Field(default="dev", description="Deployment environment")
    aws_region: str | None = Field(default=None, description="AWS region")
    table_prefix: str = Field(
        default="storefront-dev",
        description="Prefix prepended to every DynamoDB table name",
    )
    mp_api_base_url: str = Field(default=DEFAULT_MP_API_BASE_URL)
    mp_access_token: str | None = Field(default=None, repr=False)
    mp_webhook_secret: str | None = Field(default=None, repr=False)
    signature_required: bool = Field(
        default=False,
        description="Refuse webhook deliveries when the secret could not be loaded",
    )
    site_url: str = Field(default=DEFAULT_SITE_URL)
    currency: str = Field(default="ARS")
    order_number_prefix: str = Field(default="AMG")
    email_from: str | None = Field(default=None)
    test_email_to: str | None = Field(default=None)
    http_timeout_seconds: float | None = Field(default=None, gt=0)

    @field_validator("site_url", "mp_api_base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        url = value.strip().rstrip("/")
        if not url.lower().startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https:// (got {value!r})")
        return url

    @property
    def notification_url(self) -> str:
        """Webhook URL handed to the payment provider."""
        return f"{self.site_url}/api/webhooks/mercadopago"

    def ssm_path(self, name: str) -> str:
        """Full SSM parameter path for a Mercado Pago secret."""
        return f"/storefront/{self.environment}/mercadopago/{name}"


def load_settings(
    environ: Mapping[str, str] | None = None,
    ssm: SSMService | None = None,
) -> Settings:
    """Build Settings from the environment, resolving secrets from SSM.

    Args:
        environ: Mapping to read from. Defaults to os.environ.
        ssm: SSM service used when a secret is not present in the environment.
            Created lazily only if needed.

    Returns:
        Settings instance to be shared by reference.
    """
    env = os.environ if environ is None else environ
    environment = env.get("ENVIRONMENT", "dev")
    region = env.get("AWS_DEFAULT_REGION") or env.get("AWS_REGION")

    timeout_raw = env.get("HTTP_TIMEOUT_SECONDS")

    settings = Settings(
        environment=environment,
        aws_region=region,
        table_prefix=env.get("DYNAMODB_TABLE_PREFIX", f"storefront-{environment}"),
        mp_api_base_url=env.get("MP_API_BASE_URL", DEFAULT_MP_API_BASE_URL),
        mp_access_token=env.get("MP_ACCESS_TOKEN") or None,
        mp_webhook_secret=env.get("MP_WEBHOOK_SECRET") or None,
        site_url=env.get("SITE_URL", DEFAULT_SITE_URL),
        currency=env.get("STORE_CURRENCY", "ARS"),
        order_number_prefix=env.get("ORDER_NUMBER_PREFIX", "AMG"),
        email_from=env.get("EMAIL_FROM") or None,
        test_email_to=env.get("TEST_EMAIL_TO") or None,
        http_timeout_seconds=float(timeout_raw) if timeout_raw else None,
    )

    if settings.mp_access_token and settings.mp_webhook_secret:
        return settings

    ssm = ssm or SSMService(region_name=region)
    updates: dict[str, str | bool | None] = {}
    if not settings.mp_access_token:
        try:
            updates["mp_access_token"] = ssm.get_optional_parameter(
                settings.ssm_path("access_token")
            )
        except SSMServiceError as e:
            # Provider calls fail as not configured until the next cold start
            logger.error("Mercado Pago access token unavailable: %s", e)
    if not settings.mp_webhook_secret:
        try:
            updates["mp_webhook_secret"] = ssm.get_optional_parameter(
                settings.ssm_path("webhook_secret")
            )
        except SSMServiceError as e:
            # An unreadable secret must not disable signature verification
            logger.error("Webhook secret unavailable, refusing deliveries: %s", e)
            updates["signature_required"] = True

    return settings.model_copy(update=updates)
