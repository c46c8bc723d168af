"""Validation rules for recipients and fields before send, submit and export."""

import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

from fieldsign.utils.logger import logger

if TYPE_CHECKING:
    from fieldsign.models.document import DocumentField, Recipient

# Name the recipient editor pre-fills for new rows
PLACEHOLDER_RECIPIENT_NAME = "Full name"


class ValidationError(Exception):
    """Raised when validation fails."""

    pass


class SendValidationError(ValidationError):
    """Raised with every violation found, not just the first."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def validate_email(email: str) -> bool:
    """Validate email address format."""
    if not email or not isinstance(email, str):
        return False

    pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    return bool(re.match(pattern, email))


def validate_recipient_name(name: str) -> bool:
    """A name must be non-blank and not the editor's placeholder."""
    if not name or not isinstance(name, str):
        return False
    stripped = name.strip()
    return bool(stripped) and stripped != PLACEHOLDER_RECIPIENT_NAME


def validate_send_request(
    recipients: Iterable["Recipient"], fields: Iterable["DocumentField"]
) -> list[str]:
    """Collect every problem that blocks sending a document for signature."""
    recipients = list(recipients)
    fields = list(fields)
    errors: list[str] = []

    for index, recipient in enumerate(recipients, 1):
        if not validate_email(recipient.email):
            errors.append(f"Recipient {index} needs a valid email address")
        if not validate_recipient_name(recipient.name):
            errors.append(f"Recipient {index} needs a valid name")

    signers = [r for r in recipients if r.role.value == "signer"]
    signature_fields = [f for f in fields if f.type.value == "signature"]

    if signers and not signature_fields:
        errors.append("Add at least one signature field for signers")

    known_ids = {r.id for r in recipients}
    for index, field in enumerate(signature_fields, 1):
        if field.recipient_id not in known_ids:
            errors.append(f"Signature field {index} is not assigned to a recipient")

    if errors:
        logger.warning(f"Send validation failed with {len(errors)} error(s)")
    return errors


def validate_submission(
    recipients: Iterable["Recipient"],
    fields: Iterable["DocumentField"],
    recipient_id: str | None = None,
) -> list[str]:
    """List required fields of signer recipients that are still unsigned.

    When ``recipient_id`` is given only that recipient's fields are checked.
    """
    signers = {r.id: r for r in recipients if r.role.value == "signer"}
    if recipient_id is not None:
        signers = {k: v for k, v in signers.items() if k == recipient_id}

    errors = []
    for field in fields:
        if not field.required or field.signed_data is not None:
            continue
        recipient = signers.get(field.recipient_id)
        if recipient is None:
            continue
        who = recipient.name or recipient.email or recipient.id
        errors.append(
            f"Required {field.type.value} field {field.id} on page {field.page_number} "
            f"is not signed by {who}"
        )
    return errors


def validate_recipient_references(
    recipients: Iterable["Recipient"], fields: Iterable["DocumentField"]
) -> list[str]:
    """List signed fields whose recipient no longer exists."""
    known_ids = {r.id for r in recipients}
    return [
        f"Field {field.id} references unknown recipient '{field.recipient_id}'"
        for field in fields
        if field.signed_data is not None and field.recipient_id not in known_ids
    ]
