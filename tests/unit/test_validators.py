"""Unit tests for send, submit and export validation."""

from fieldsign.models.document import DocumentField, FieldType, Recipient, RecipientRole, SignedData
from fieldsign.utils.validators import (
    SendValidationError,
    validate_email,
    validate_recipient_name,
    validate_recipient_references,
    validate_send_request,
    validate_submission,
)


def _field(field_id: str, recipient_id: str, field_type: FieldType = FieldType.SIGNATURE, **kwargs):
    return DocumentField.with_default_size(field_type, id=field_id, x=0, y=0, recipient_id=recipient_id, **kwargs)


class TestValidators:
    """Test cases for validation helpers."""

    def test_validate_email(self):
        """Test email format validation."""
        assert validate_email("jane@example.com") is True
        assert validate_email("jane@example") is False
        assert validate_email("") is False

    def test_validate_recipient_name(self):
        """Test blank and placeholder names are rejected."""
        assert validate_recipient_name("Jane Doe") is True
        assert validate_recipient_name("   ") is False
        assert validate_recipient_name("Full name") is False

    def test_send_request_valid(self):
        """Test a complete send request has no errors."""
        jane = Recipient(id="r1", name="Jane", email="jane@example.com")
        assert validate_send_request([jane], [_field("f1", "r1")]) == []

    def test_send_request_lists_every_error(self):
        """Test all problems are reported together."""
        recipients = [
            Recipient(id="r1", name="Full name", email="bad"),
            Recipient(id="r2", name="Sam", email="sam@example.com"),
        ]
        errors = validate_send_request(recipients, [_field("f1", "")])

        assert errors == [
            "Recipient 1 needs a valid email address",
            "Recipient 1 needs a valid name",
            "Signature field 1 is not assigned to a recipient",
        ]

    def test_signers_need_a_signature_field(self):
        """Test signers without any signature field block sending."""
        jane = Recipient(id="r1", name="Jane", email="jane@example.com")
        errors = validate_send_request([jane], [_field("d1", "r1", FieldType.DATE)])
        assert errors == ["Add at least one signature field for signers"]

    def test_viewers_only_need_no_signature_field(self):
        """Test a viewer-only send does not require signature fields."""
        viewer = Recipient(id="r1", name="Val", email="val@example.com", role=RecipientRole.VIEWER)
        assert validate_send_request([viewer], []) == []

    def test_submission_lists_unsigned_required_fields(self):
        """Test unsigned required signer fields are listed."""
        jane = Recipient(id="r1", name="Jane", email="jane@example.com")
        fields = [
            _field("f1", "r1"),
            _field("f2", "r1", signed_data=SignedData.typed("Jane")),
            _field("f3", "r1", FieldType.TEXT, required=False),
        ]
        errors = validate_submission([jane], fields)
        assert errors == ["Required signature field f1 on page 1 is not signed by Jane"]

    def test_submission_filters_by_recipient(self):
        """Test only the given recipient's fields are checked."""
        recipients = [
            Recipient(id="r1", name="Jane", email="jane@example.com"),
            Recipient(id="r2", name="Sam", email="sam@example.com"),
        ]
        fields = [_field("f1", "r1"), _field("f2", "r2")]
        assert validate_submission(recipients, fields, "r2") == [
            "Required signature field f2 on page 1 is not signed by Sam"
        ]

    def test_recipient_references(self):
        """Test signed fields pointing at removed recipients are reported."""
        jane = Recipient(id="r1", name="Jane", email="jane@example.com")
        fields = [
            _field("f1", "r1", signed_data=SignedData.typed("Jane")),
            _field("f2", "gone", signed_data=SignedData.typed("Sam")),
            _field("f3", "gone"),
        ]
        assert validate_recipient_references([jane], fields) == [
            "Field f2 references unknown recipient 'gone'"
        ]

    def test_send_validation_error_keeps_list(self):
        """Test the exception carries every error."""
        error = SendValidationError(["a", "b"])
        assert error.errors == ["a", "b"]
        assert str(error) == "a; b"
