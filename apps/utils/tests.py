# apps/utils/tests.py
import json
import logging
from datetime import date

from django.test import TestCase
from rest_framework.exceptions import ValidationError

from .exceptions import BusinessValidationError, InvalidTransitionError, custom_exception_handler
from .logging import JSONFormatter
from .validators import validate_username, validate_date_range


class ValidatorTests(TestCase):
    def test_username_validator(self):
        self.assertEqual(validate_username("operator1"), "operator1")
        with self.assertRaises(ValidationError):
            validate_username("operator 1")

    def test_date_range_validator(self):
        validate_date_range(date(2025, 3, 1), date(2025, 3, 1))
        validate_date_range(None, date(2025, 3, 1))

        with self.assertRaises(ValueError):
            validate_date_range(date(2025, 3, 2), date(2025, 3, 1))


class ExceptionHandlerTests(TestCase):
    def test_validation_error_carries_field_errors(self):
        response = custom_exception_handler(BusinessValidationError({"quantity": "Must be at least 1."}), {})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "validation_error")
        self.assertEqual(response.data["errors"], {"quantity": ["Must be at least 1."]})

    def test_invalid_transition_is_distinct_from_authorization(self):
        response = custom_exception_handler(InvalidTransitionError("Completed", "Pending"), {})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data["code"], "invalid_transition")
        self.assertIn("Completed -> Pending", response.data["error"])


class JSONFormatterTests(TestCase):
    def test_scrubs_secrets_and_lifts_context(self):
        record = logging.LogRecord(
            name="apps.work_orders", level=logging.INFO, pathname=__file__, lineno=1,
            msg={"username": "manager", "password": "hunter2"}, args=None, exc_info=None,
        )
        record.work_order_id = "abc"

        payload = json.loads(JSONFormatter().format(record))

        self.assertEqual(payload["work_order_id"], "abc")
        self.assertNotIn("hunter2", payload["msg"])
        self.assertIn("REDACTED", payload["msg"])


class HealthCheckTests(TestCase):
    def test_health_reports_db(self):
        response = self.client.get("/api/v1/utils/health/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["components"]["db"], "ok")
