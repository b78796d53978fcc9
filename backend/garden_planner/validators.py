from typing import List, Optional

MAX_IDENTIFIER_LENGTH = 64
MAX_NAME_LENGTH = 255


class GardenValidators:
    """Request-shape rules for garden payloads.

    Domain invariants (areas, sunlight, spacing, compatibility) are checked by
    the validation service so they come back with structured failure codes.
    """

    @staticmethod
    def validate_identifier(value: str) -> str:
        """Validate a caller-assigned zone or plant id"""
        value = value.strip()
        if not value:
            raise ValueError("Id cannot be blank")
        if len(value) > MAX_IDENTIFIER_LENGTH:
            raise ValueError(f"Id cannot be longer than {MAX_IDENTIFIER_LENGTH} characters")
        if any(ch.isspace() for ch in value):
            raise ValueError("Id cannot contain whitespace")
        return value

    @staticmethod
    def validate_name(value: Optional[str]) -> Optional[str]:
        """Validate an optional display name"""
        if value is None:
            return None
        value = value.strip()
        if len(value) > MAX_NAME_LENGTH:
            raise ValueError(f"Name cannot be longer than {MAX_NAME_LENGTH} characters")
        return value or None

    @staticmethod
    def validate_id_list(values: List[str]) -> List[str]:
        """Validate a companion/incompatible id list, dropping repeats"""
        cleaned = []
        for value in values:
            value = GardenValidators.validate_identifier(value)
            if value not in cleaned:
                cleaned.append(value)
        return cleaned

