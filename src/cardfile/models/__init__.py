"""Database models for cardfile."""

from cardfile.models.contacts import Contact, ContactBase
from cardfile.models.shares import (
    AddressBookShareBase,
    AddressBookShareRecord,
    ShareGrant,
    ShareGrantBase,
)

__all__ = [
    "AddressBookShareBase",
    "AddressBookShareRecord",
    "Contact",
    "ContactBase",
    "ShareGrant",
    "ShareGrantBase",
]
