"""OpenTelemetry instrumentation and logging utilities."""

from campus_storefront.observability.config import configure_logging, setup_observability
from campus_storefront.observability.decorators import traced

__all__ = ["setup_observability", "configure_logging", "traced"]
