"""Ticket-only refund allocation for vendor-visible analytics.

Pure calculation: no logging, no I/O.
"""

from vendor_analytics.analytics.exceptions import InvariantViolationError


def allocate_ticket_only_refund_cents(
    refund_amount_cents: int,
    ticket_subtotal_cents_for_event: int,
    donation_refunded: bool,
    refund_type: str = "full",
) -> int:
    """
    Portion of a refund that vendors see as a ticket refund.

    A refund that also returned a donation is capped at the event's ticket
    subtotal so the donation remainder is excluded from the vendor view.
    Any other refund is treated as ticket-only.

    Args:
        refund_amount_cents: Refunded amount (non-negative)
        ticket_subtotal_cents_for_event: Ticket subtotal of the order for the event
        donation_refunded: Whether the refund included the donation
        refund_type: "full" or "partial"; allocation is the same for both

    Raises:
        InvariantViolationError: On negative inputs
    """
    if refund_amount_cents < 0:
        raise InvariantViolationError("Refund amount must be non-negative.", code="negative_refund_amount")

    if ticket_subtotal_cents_for_event < 0:
        raise InvariantViolationError("Ticket subtotal must be non-negative.", code="negative_ticket_subtotal")

    if donation_refunded:
        return min(refund_amount_cents, ticket_subtotal_cents_for_event)

    return refund_amount_cents
