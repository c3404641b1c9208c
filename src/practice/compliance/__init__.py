"""Statutory filing deadlines."""

from .compliance_models import ComplianceItem, ComplianceSource, ComplianceStatus, ComplianceType

__all__ = ["ComplianceItem", "ComplianceSource", "ComplianceStatus", "ComplianceType"]
