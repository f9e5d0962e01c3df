"""Shared-secret validation for the realtime change webhook.

The hosted backend signs nothing; it sends a configured secret in the
``X-Webhook-Secret`` header. Each accepted secret is compared in constant
time against the UTF-8 bytes of the presented value.
"""

import hmac


class WebhookSecretValidator:
    """Validates webhook secrets against a configured set."""

    def __init__(self, secrets: list[str]) -> None:
        """Initialize validator with the accepted secrets.

        Args:
            secrets: Accepted secret strings

        Raises:
            ValueError: If no secret is provided
        """
        if not secrets:
            raise ValueError("At least one webhook secret must be provided")

        self.secrets = set(secrets)

    def validate(self, secret: str | None) -> bool:
        """Check a presented secret.

        Args:
            secret: Value of the X-Webhook-Secret header

        Returns:
            bool: True if valid, False otherwise
        """
        if not secret:
            return False
        presented = secret.encode("utf-8")
        return any(hmac.compare_digest(presented, known.encode("utf-8")) for known in self.secrets)
