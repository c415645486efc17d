from dataclasses import asdict

from pydantic import ValidationError

from busdesk.schemas.ticket import Passenger


def validate_passenger(form) -> dict[str, str]:
    """Field name -> error message for one passenger form; empty when valid."""
    data = form if isinstance(form, dict) else asdict(form)
    try:
        Passenger.model_validate(data)
    except ValidationError as e:
        return {str(error["loc"][0]): error["msg"] for error in e.errors()}
    return {}


def validate_passengers(forms) -> dict[int, dict[str, str]]:
    """Errors keyed by passenger index, only for the forms that fail."""
    errors = {}
    for index, form in enumerate(forms):
        form_errors = validate_passenger(form)
        if form_errors:
            errors[index] = form_errors
    return errors
