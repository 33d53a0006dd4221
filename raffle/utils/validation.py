from typing import Dict
from pydantic import ValidationError


def format_validation_errors(exc: ValidationError) -> Dict[str, str]:
    """Flatten pydantic errors into {field: message}"""
    errors = {}

    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "__root__"
        message = error.get("msg", "Invalid value")
        # model-level validators report "Value error, <message>"
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors[field] = message

    return errors
