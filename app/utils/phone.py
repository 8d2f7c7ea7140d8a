import phonenumbers

from app.config import settings


def normalize_phone(raw: str) -> str:
    """Return ``raw`` as an E.164 number, prefixing the default country code.

    Raises ValueError for numbers that are not valid.
    """
    candidate = (raw or "").strip().replace(" ", "").replace("-", "")
    if not candidate:
        raise ValueError("Please enter a valid phone number")
    if not candidate.startswith("+"):
        candidate = f"{settings.DEFAULT_COUNTRY_CODE}{candidate}"
    try:
        parsed = phonenumbers.parse(candidate, None)
    except phonenumbers.NumberParseException:
        raise ValueError("Please enter a valid phone number")
    if not phonenumbers.is_valid_number(parsed):
        raise ValueError("Please enter a valid phone number")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
