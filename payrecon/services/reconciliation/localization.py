"""Localized text lookup for order notes."""

from typing import Protocol


class Localizer(Protocol):
    def resolve(self, template_key: str) -> str:
        """Template for `template_key`, or an empty string when none exists."""
        ...


# Entries are indexed by `OrderNoteKind`; `{0}` takes the optional substitution.
DEFAULT_ORDER_NOTE_STRINGS = ";".join(
    [
        "Gateway order reference {0} created.",
        "Authorization notification received: {0}",
        "Capture notification received: {0}",
        "Refund notification received: {0}",
        "Payment authorized {0}",
        "Payment captured {0}",
        "Refund issued {0}",
        "Gateway order reference canceled {0}",
    ]
)


class DictLocalizer:
    """In-memory resource catalogue."""

    def __init__(self, resources: dict[str, str] | None = None) -> None:
        self.resources = dict(resources or {})

    @classmethod
    def with_defaults(cls, resource_prefix: str) -> "DictLocalizer":
        return cls({f"{resource_prefix}.OrderNoteStrings": DEFAULT_ORDER_NOTE_STRINGS})

    def resolve(self, template_key: str) -> str:
        return self.resources.get(template_key, "")
