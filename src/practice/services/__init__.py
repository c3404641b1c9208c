"""Recurring client services."""

from .service_models import DEFAULT_SERVICES, Service, ServiceFrequency, ServiceStatus

__all__ = ["DEFAULT_SERVICES", "Service", "ServiceFrequency", "ServiceStatus"]
