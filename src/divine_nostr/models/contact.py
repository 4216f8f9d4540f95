"""Follow list (NIP-02) entries."""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_hex64, validate_str_no_null


@dataclass(frozen=True, slots=True)
class Contact:
    """A single followed pubkey with optional relay hint and petname."""

    pubkey: str
    relay_url: str = ""
    petname: str = ""

    def __post_init__(self) -> None:
        validate_hex64(self.pubkey, "pubkey")
        validate_str_no_null(self.relay_url, "relay_url")
        validate_str_no_null(self.petname, "petname")

    def to_tag(self) -> list[str]:
        """Render as a ``p`` tag, trimming empty trailing fields."""
        tag = ["p", self.pubkey, self.relay_url, self.petname]
        while len(tag) > 2 and not tag[-1]:  # noqa: PLR2004
            tag.pop()
        return tag


@dataclass(frozen=True, slots=True)
class ContactList:
    """Ordered, duplicate-free collection of contacts."""

    contacts: tuple[Contact, ...] = ()

    def __post_init__(self) -> None:
        seen: dict[str, Contact] = {}
        for contact in self.contacts:
            seen.setdefault(contact.pubkey, contact)
        object.__setattr__(self, "contacts", tuple(seen.values()))

    @classmethod
    def from_pubkeys(cls, pubkeys: list[str]) -> ContactList:
        return cls(tuple(Contact(pk) for pk in pubkeys))

    def to_tags(self) -> list[list[str]]:
        return [c.to_tag() for c in self.contacts]

    def __len__(self) -> int:
        return len(self.contacts)
