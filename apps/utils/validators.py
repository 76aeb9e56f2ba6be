import re
from rest_framework import serializers


def validate_username(value):
    """
    Handles are used in URLs and audit trails, so whitespace is rejected.
    """
    if not value or re.search(r"\s", str(value)):
        raise serializers.ValidationError("Username must not contain spaces.")
    return value


def validate_date_range(from_date, to_date):
    if from_date and to_date and from_date > to_date:
        raise ValueError("from_date must be on or before to_date.")
