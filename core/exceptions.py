"""Typed exceptions for ticket, invoice and payment failures."""


class RepairHubError(Exception):
    """Base class for repair shop domain errors."""


class NotFoundError(RepairHubError, ValueError):
    """Referenced ticket, invoice or payment does not exist."""

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class InvalidAmountError(RepairHubError, ValueError):
    """Payment or cost amount is zero, negative or otherwise unusable."""


class InvoiceStateError(RepairHubError, ValueError):
    """Invoice is in a state that does not allow the requested operation."""
