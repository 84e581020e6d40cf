"""
Validation utilities for inbound signaling payloads.
"""

from typing import Any, Dict, List, Optional


class ValidationUtils:
    """Common validation utilities."""

    @staticmethod
    def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> Optional[str]:
        """Validate that all required fields are present and non-empty."""
        missing_fields = [field for field in required_fields if data.get(field) in (None, "")]
        if missing_fields:
            return f"Missing required fields: {', '.join(missing_fields)}"
        return None

    @staticmethod
    def normalize_identifier(value: Any) -> Optional[str]:
        """Return an identifier as an opaque string, or None when it is empty or not scalar."""
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str) and value:
            return value
        return None
