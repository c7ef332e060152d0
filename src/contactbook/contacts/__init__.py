"""
Contacts: models, persistence, business logic and HTTP routes.
"""

from contactbook.contacts.models import Contact, ContactMethod

__all__ = ["Contact", "ContactMethod"]
