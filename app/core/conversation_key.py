"""Conversation key derivation for the pending-response ledger."""

from __future__ import annotations

from typing import Optional


def build_conversation_key(
    conversation_external_id: Optional[str], contact_phone: Optional[str]
) -> str:
    """
    Build the key that scopes pending-entry lookups.

    Form: {conversation external id}:{contact phone}. Pairing is per
    conversation, so a contact talking on two channels gets two keys.
    """
    if not conversation_external_id or not contact_phone:
        raise ValueError("conversation external id and contact phone are required")
    return f"{conversation_external_id}:{contact_phone}"
