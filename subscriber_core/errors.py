from __future__ import annotations

from typing import Iterable, List


class SubscriberError(Exception):
    """Base class for every recoverable failure surfaced to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SubscriberError):
    pass


class MissingFieldsError(ValidationError):
    def __init__(self, fields: Iterable[str]) -> None:
        self.fields: List[str] = list(fields)
        super().__init__("Please fill all required fields: " + ", ".join(self.fields))


class InvalidPhoneError(ValidationError):
    def __init__(self, phone: str = "") -> None:
        self.phone = phone
        super().__init__("Mobile number must be exactly 10 digits")


class InvalidProviderError(ValidationError):
    def __init__(self, provider: str = "") -> None:
        self.provider = provider
        super().__init__("Please select a service provider" if not provider else f"Unknown service provider: {provider}")


class InvalidFieldError(ValidationError):
    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class StoreError(SubscriberError):
    pass


class BulkImportError(SubscriberError):
    pass
