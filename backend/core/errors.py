"""
Error taxonomy for the inventory ledger.

Routers never build these into HTTP responses themselves; `main.py` registers
one exception handler per class.
"""

from typing import Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError


class LedgerError(Exception):
    message = "Inventory error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(LedgerError):
    """Caller-fixable input problem. Carries every violated constraint."""

    message = "Validation failed"

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        errors = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            msg = str(err.get("msg", "invalid value"))
            # pydantic prefixes messages raised from validators
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, "):]
            errors.append({"field": loc or "__root__", "message": msg})
        return cls(errors)


class ConflictError(LedgerError):
    message = "SKU already exists"


class NotFoundError(LedgerError):
    message = "Item not found"


class StorageError(LedgerError):
    message = "Storage failure"
