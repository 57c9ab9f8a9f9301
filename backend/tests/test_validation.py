import unittest

from batepapo.errors import ValidationError
from batepapo.validation import clean_and_validate, validate


class TestValidation(unittest.TestCase):

    def test_participant_ok(self):
        participant = validate("participant", {"name": "Ana"})
        self.assertEqual(participant.name, "Ana")

    def test_participant_name_empty_after_sanitizing(self):
        with self.assertRaises(ValidationError) as ctx:
            clean_and_validate("participant", {"name": "  <br/> "})
        self.assertEqual(len(ctx.exception.errors), 1)
        self.assertTrue(ctx.exception.errors[0].startswith("name:"))

    def test_message_ok(self):
        message = clean_and_validate("message", {"to": "Todos", "text": " oi ", "type": "message"})
        self.assertEqual((message.to, message.text, message.type), ("Todos", "oi", "message"))

    def test_all_errors_are_reported_in_order(self):
        with self.assertRaises(ValidationError) as ctx:
            validate("message", {"to": "", "text": "", "type": "status"})
        fields = [error.split(":")[0] for error in ctx.exception.errors]
        self.assertEqual(fields, ["to", "text", "type"])

    def test_missing_fields(self):
        with self.assertRaises(ValidationError) as ctx:
            validate("message", {})
        self.assertEqual(len(ctx.exception.errors), 3)

    def test_status_kind_is_not_accepted_from_clients(self):
        with self.assertRaises(ValidationError):
            validate("message", {"to": "Todos", "text": "oi", "type": "status"})

    def test_non_object_payload(self):
        with self.assertRaises(ValidationError) as ctx:
            clean_and_validate("participant", ["Ana"])
        self.assertEqual(ctx.exception.errors, ["body: must be a JSON object"])

    def test_non_string_name(self):
        with self.assertRaises(ValidationError):
            clean_and_validate("participant", {"name": 7})


if __name__ == '__main__':
    unittest.main()
