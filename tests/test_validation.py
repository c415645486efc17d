"""Passenger form validation."""

import pytest

from busdesk.workflow.sale import PassengerForm
from busdesk.workflow.validation import validate_passenger, validate_passengers

VALID = {
    "passenger_name": "Ana",
    "passenger_surname": "Gelashvili",
    "passenger_email": "ana@example.com",
    "passenger_phone": "",
}


class TestValidatePassenger:
    def test_valid_without_phone(self):
        assert validate_passenger(VALID) == {}

    def test_accepts_dataclass_forms(self):
        assert validate_passenger(PassengerForm(**VALID)) == {}

    def test_blank_form_reports_each_required_field(self):
        assert validate_passenger(PassengerForm()) == {
            "passenger_name": "Name is required",
            "passenger_surname": "Surname is required",
            "passenger_email": "Email is required",
        }

    def test_whitespace_name_is_blank(self):
        errors = validate_passenger({**VALID, "passenger_name": "   "})
        assert errors == {"passenger_name": "Name is required"}

    @pytest.mark.parametrize("email", ["ana", "ana@example", "ana @example.com", "@example.com"])
    def test_malformed_email(self, email):
        errors = validate_passenger({**VALID, "passenger_email": email})
        assert errors == {"passenger_email": "Invalid email format"}

    @pytest.mark.parametrize("phone", ["+995555123456", "55512345", "123456789012345"])
    def test_valid_phone(self, phone):
        assert validate_passenger({**VALID, "passenger_phone": phone}) == {}

    @pytest.mark.parametrize("phone", ["1234567", "+995 555 123", "phone", "1234567890123456"])
    def test_invalid_phone(self, phone):
        errors = validate_passenger({**VALID, "passenger_phone": phone})
        assert errors == {"passenger_phone": "Invalid phone number format"}


class TestValidatePassengers:
    def test_errors_keyed_by_failing_index_only(self):
        forms = [PassengerForm(**VALID), PassengerForm(), PassengerForm(**VALID)]

        errors = validate_passengers(forms)

        assert list(errors) == [1]
        assert "passenger_name" in errors[1]

    def test_all_valid(self):
        assert validate_passengers([PassengerForm(**VALID)] * 3) == {}
