"""Tests for the encoding of tuple sets as SQL conditions."""
from __future__ import annotations

import datetime
import decimal
import unittest

import numpy as np

from relvar import qal
from relvar.qal import literals, make_header


def make_test_header() -> qal.Header:
    return make_header([
        {"name": "a", "sql_type": "int", "is_key": True},
        {"name": "b", "sql_type": "varchar(32)"},
        {"name": "c", "sql_type": "double"},
        {"name": "d", "sql_type": "date"},
        {"name": "e", "sql_type": "blob"},
    ])


class TupleEncodingTests(unittest.TestCase):
    def test_single_record(self):
        condition = literals.encode_tuples([{"a": 1, "b": "x"}], make_test_header())
        self.assertEqual(condition, "`a`=1 AND `b`='x'")

    def test_multiple_records(self):
        condition = literals.encode_tuples([{"a": 1, "b": "x"}, {"a": 2, "b": "y"}], make_test_header())
        self.assertEqual(condition, "(`a`=1 AND `b`='x') OR (`a`=2 AND `b`='y')")

    def test_null(self):
        condition = literals.encode_tuples([{"a": 1, "c": None}], make_test_header())
        self.assertEqual(condition, "`a`=1 AND `c` IS NULL")

    def test_empty_record(self):
        self.assertEqual(literals.encode_tuples([{}], make_test_header()), "TRUE")

    def test_no_records(self):
        self.assertRaises(ValueError, literals.encode_tuples, [], make_test_header())

    def test_blob(self):
        with self.assertRaises(qal.BlobInRestriction) as context:
            literals.encode_tuples([{"e": b"\x00"}], make_test_header())
        self.assertEqual(context.exception.attribute, "e")

    def test_long_restriction(self):
        records = [{"a": idx} for idx in range(literals.LongRestrictionThreshold + 1)]
        with self.assertWarns(literals.LongRestrictionWarning):
            literals.encode_tuples(records, make_test_header())


class LiteralFormattingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.header = make_test_header()

    def test_string_escaping(self):
        attribute = self.header.by_name("b")
        self.assertEqual(literals.format_literal(attribute, "O'Brien"), "'O''Brien'")
        self.assertEqual(literals.format_literal(attribute, "C:\\data"), "'C:\\\\data'")

    def test_string_escaping_is_reversible(self):
        original = "O'Brien\\"
        literal = literals.format_literal(self.header.by_name("b"), original)
        self.assertTrue(literal.startswith("'") and literal.endswith("'"))
        decoded = literal[1:-1].replace("''", "'").replace("\\\\", "\\")
        self.assertEqual(decoded, original)

    def test_numbers(self):
        int_attribute, float_attribute = self.header.by_name("a"), self.header.by_name("c")
        test_cases = [
            (int_attribute, 42, "42"),
            (int_attribute, np.int64(7), "7"),
            (int_attribute, True, "1"),
            (int_attribute, np.bool_(False), "0"),
            (float_attribute, 0.1, "0.1"),
            (float_attribute, np.float32(0.5), "0.5"),
            (float_attribute, decimal.Decimal("1.25"), "1.25"),
        ]
        for attribute, value, expected in test_cases:
            with self.subTest("Numeric literal", value=value):
                self.assertEqual(literals.format_literal(attribute, value), expected)

    def test_dates(self):
        attribute = self.header.by_name("d")
        self.assertEqual(literals.format_literal(attribute, datetime.date(2012, 1, 31)), "'2012-01-31'")
        self.assertEqual(literals.format_literal(attribute, datetime.datetime(2012, 1, 31, 8, 15)),
                         "'2012-01-31 08:15:00'")

    def test_non_scalar_values(self):
        test_cases = [("b", 42), ("a", "42"), ("a", [1, 2]), ("c", {"x": 1})]
        for name, value in test_cases:
            with self.subTest("Invalid literal", attribute=name, value=value):
                self.assertRaises(qal.NonScalarLiteral, literals.format_literal, self.header.by_name(name), value)


if __name__ == "__main__":
    unittest.main()
