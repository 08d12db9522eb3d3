"""Expansion of handler rules into concrete channel endpoints."""

from __future__ import annotations

from collections.abc import Iterable

from alert_router.alerter.rules import Contact, HandlerRule


def resolve_endpoints(handler: HandlerRule, contacts: Iterable[Contact]) -> list[str]:
    """Resolve a handler rule's contact names into endpoint values.

    For each contact name, the first contact with that name (case-insensitive)
    contributes every non-empty endpoint value whose type matches the
    handler code. Unknown contacts and contacts without a matching endpoint
    contribute nothing. Duplicates are kept.

    Args:
        handler: Handler rule naming the channel and the contacts.
        contacts: Contacts from the alerting configuration.

    Returns:
        Endpoint values such as email addresses or phone numbers. Empty
        when nothing resolves; logging that is up to the caller.
    """
    contacts = list(contacts)
    channel = handler.handler_code.casefold()
    endpoints: list[str] = []

    for name in handler.contact_names:
        wanted = name.casefold()
        contact = next((c for c in contacts if c.name.casefold() == wanted), None)
        if contact is None:
            continue
        endpoints.extend(
            ep.value
            for ep in contact.endpoints
            if ep.value and ep.channel_type.casefold() == channel
        )

    return endpoints
