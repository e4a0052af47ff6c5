import unittest
from decimal import Decimal

from db.models import AdminStats, CartLine
from utils.pure import (
    TAX_RATE,
    compute_totals,
    from_cents,
    merge_cart_lines,
    parse_cart_line,
    positive_int,
    round_cents,
    to_cents,
)


class MoneyTestCase(unittest.TestCase):
    def test_round_half_up_at_cent_boundary(self):
        self.assertEqual(round_cents(Decimal("2.345")), Decimal("2.35"))
        self.assertEqual(round_cents(Decimal("2.344")), Decimal("2.34"))
        self.assertEqual(round_cents(Decimal("0.005")), Decimal("0.01"))

    def test_cents_conversion(self):
        self.assertEqual(to_cents("19.99"), 1999)
        self.assertEqual(to_cents(Decimal("100")), 10000)
        self.assertEqual(to_cents(0.1), 10)
        self.assertEqual(from_cents(1999), Decimal("19.99"))
        self.assertEqual(from_cents(None), Decimal("0.00"))
        for bad in ("abc", "NaN", float("inf")):
            with self.assertRaises(ValueError):
                to_cents(bad)

    def test_compute_totals(self):
        self.assertEqual(TAX_RATE, Decimal("0.08"))
        self.assertEqual(
            compute_totals([(Decimal("100.00"), 3)]),
            (Decimal("300.00"), Decimal("324.00")),
        )
        # 59.97 * 1.08 = 64.7676
        self.assertEqual(
            compute_totals([(Decimal("19.99"), 3)]),
            (Decimal("59.97"), Decimal("64.77")),
        )
        self.assertEqual(compute_totals([]), (Decimal("0.00"), Decimal("0.00")))

    def test_average_order_value_without_orders(self):
        stats = AdminStats(0, 0, Decimal("0.00"), 0)
        self.assertEqual(stats.average_order_value, Decimal("0.00"))
        stats = AdminStats(3, 3, Decimal("100.00"), 1)
        self.assertEqual(stats.average_order_value, Decimal("33.33"))


class CartLineTestCase(unittest.TestCase):
    def test_positive_int(self):
        self.assertEqual(positive_int(3), 3)
        self.assertEqual(positive_int(3.0), 3)
        self.assertEqual(positive_int(" 7 "), 7)
        self.assertEqual(positive_int(Decimal("2")), 2)
        for bad in (0, -1, 1.5, "1.5", "", "x", None, True, False, float("nan"), float("inf"), [1]):
            self.assertIsNone(positive_int(bad), bad)

    def test_parse_cart_line_shapes(self):
        self.assertEqual(parse_cart_line({"id": 5, "quantity": 2}), CartLine(5, 2))
        self.assertEqual(parse_cart_line({"product_id": "5", "quantity": "2"}), CartLine(5, 2))
        # product_id wins when both are sent
        self.assertEqual(parse_cart_line({"id": 1, "product_id": 5, "quantity": 2}), CartLine(5, 2))
        self.assertEqual(parse_cart_line(CartLine(5, 2)), CartLine(5, 2))
        self.assertIsNone(parse_cart_line({"id": 5}))
        self.assertIsNone(parse_cart_line([5, 2]))

    def test_merge_cart_lines(self):
        merged = merge_cart_lines([CartLine(5, 2), CartLine(7, 1), CartLine(5, 3)])
        self.assertEqual(merged, [CartLine(5, 5), CartLine(7, 1)])
        self.assertEqual(merge_cart_lines([]), [])
