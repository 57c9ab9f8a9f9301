import unittest

from batepapo.sanitizer import clean_text, sanitize


class TestSanitizer(unittest.TestCase):

    def test_strips_markup_and_whitespace(self):
        self.assertEqual(clean_text("  <b>Ana</b>  "), "Ana")
        cleaned = clean_text("<script>alert(1)</script>oi")
        self.assertNotIn("<", cleaned)
        self.assertTrue(cleaned.endswith("oi"))

    def test_encoded_tags_never_come_out_as_markup(self):
        for raw in (
            "&lt;script&gt;alert(1)&lt;/script&gt;",
            "&lt;img src=x onerror=alert(1)&gt;",
            "&amp;lt;b&amp;gt;oi&amp;lt;/b&amp;gt;",
        ):
            cleaned = clean_text(raw)
            self.assertNotIn("<", cleaned)
            self.assertNotIn(">", cleaned)

    def test_plain_ampersand_is_escaped(self):
        self.assertEqual(clean_text("tom & jerry"), "tom &amp; jerry")

    def test_markup_only_becomes_empty(self):
        self.assertEqual(clean_text("<p>   </p>"), "")

    def test_returns_new_mapping(self):
        raw = {"to": " Todos ", "text": "<i>oi</i>", "type": "message"}
        cleaned = sanitize(raw)

        self.assertEqual(cleaned, {"to": "Todos", "text": "oi", "type": "message"})
        self.assertEqual(raw["text"], "<i>oi</i>")
        self.assertIsNot(cleaned, raw)

    def test_non_string_values_pass_through(self):
        self.assertEqual(sanitize({"name": 42, "extra": None}), {"name": 42, "extra": None})


if __name__ == '__main__':
    unittest.main()
