"""Mercado Pago secrets from AWS SSM Parameter Store.

Only consulted by ``load_settings()`` when a secret is not already in the
environment. Values are SecureStrings, cached for the life of the process.
"""

import logging
from typing import ClassVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

_ERROR_HINTS = {
    "ParameterNotFound": "SSM parameter not found",
    "AccessDeniedException": "Access denied to SSM parameter (needs ssm:GetParameter)",
    "ParameterVersionNotFound": "SSM parameter version not found",
}


class SSMServiceError(Exception):
    """Raised when an SSM parameter cannot be read."""

    def __init__(self, message: str, *, not_found: bool = False) -> None:
        super().__init__(message)
        self.not_found = not_found


class SSMService:
    """Reads decrypted parameters, caching them across instances.

    Usage:
        ssm = SSMService(region_name="eu-west-1")
        token = ssm.get_parameter("/storefront/dev/mercadopago/access_token")
    """

    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self, region_name: str | None = None) -> None:
        self._client = boto3.client("ssm", region_name=region_name)

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Return the decrypted value of ``name``.

        Args:
            name: Full parameter path
            use_cache: Serve a previously fetched value when available

        Raises:
            SSMServiceError: If the parameter is missing, not readable, or
                SSM cannot be reached.
        """
        if use_cache and name in self._cache:
            return self._cache[name]

        try:
            response = self._client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            hint = _ERROR_HINTS.get(code, f"Failed to read SSM parameter ({code})")
            raise SSMServiceError(
                f"{hint}: {name}", not_found=code == "ParameterNotFound"
            ) from e
        except BotoCoreError as e:
            raise SSMServiceError(f"SSM unreachable reading {name}: {e}") from e

        value: str = response["Parameter"]["Value"]
        self._cache[name] = value
        logger.info("Loaded SSM parameter %s", name)
        return value

    def get_optional_parameter(self, name: str) -> str | None:
        """Like ``get_parameter`` but None when the parameter does not exist.

        Only ``ParameterNotFound`` means "not configured". Throttling, access
        denied and network failures still raise, so a caller never mistakes
        an unreadable secret for an absent one.

        Raises:
            SSMServiceError: For any failure other than a missing parameter.
        """
        try:
            return self.get_parameter(name)
        except SSMServiceError as e:
            if not e.not_found:
                raise
            logger.info("Optional SSM parameter not set: %s", name)
            return None

    def clear_cache(self) -> None:
        self._cache.clear()
