"""
Tests for the VAT calculator and the totals preview endpoint
"""

import pytest
from decimal import Decimal

from app.common.errors import InvalidLineItem
from app.modules.taxes.calculator import VatCalculator, compute_line_total, compute_totals, to_decimal


# ===== CALCULATOR =====

class TestLineTotals:

    def test_line_total_is_quantity_times_price(self):
        assert compute_line_total(3, Decimal("1500")) == Decimal("4500")
        assert compute_line_total(Decimal("1.5"), Decimal("800")) == Decimal("1200.0")

    def test_float_input_uses_shortest_repr(self):
        assert to_decimal(0.1, "quantity") == Decimal("0.1")

    @pytest.mark.parametrize("bad", [-1, Decimal("-0.01"), "abc", None, True, float("nan"), float("inf")])
    def test_invalid_quantity_rejected(self, bad):
        with pytest.raises(InvalidLineItem):
            compute_line_total(bad, 100)

    def test_negative_price_rejected(self):
        with pytest.raises(InvalidLineItem):
            compute_line_total(1, -100)

    def test_line_total_rounded_to_ore(self):
        assert compute_line_total(Decimal("1.5"), Decimal("33.33")) == Decimal("50.00")  # 49.995
        assert compute_line_total(Decimal("0.333"), Decimal("10.01")) == Decimal("3.33")

    @pytest.mark.parametrize("quantity, unit_price", [
        (Decimal("0.3333"), Decimal("10")),
        (Decimal("1"), Decimal("10.005")),
    ])
    def test_more_decimals_than_stored_rejected(self, quantity, unit_price):
        with pytest.raises(InvalidLineItem):
            compute_line_total(quantity, unit_price)

    def test_trailing_zeros_accepted(self):
        assert compute_line_total(Decimal("2.0000"), Decimal("10.500")) == Decimal("21.00")


class TestTotals:

    def test_single_line_at_25_percent(self):
        totals = compute_totals([{"quantity": 1, "unit_price": 5000}], 25)
        assert totals.subtotal == Decimal("5000")
        assert totals.vat_amount == Decimal("1250")
        assert totals.total == Decimal("6250")

    def test_service_price_rounds_vat_half_up(self):
        calculator = VatCalculator()
        totals = calculator.invoice_amounts(Decimal("795"), 25)
        assert totals.subtotal == Decimal("795")
        assert totals.vat_amount == Decimal("199")
        assert totals.total == Decimal("994")

    def test_vat_rounded_once_on_aggregate(self):
        # Per-line rounding would give 1 + 1 + 1 = 3
        lines = [{"quantity": 1, "unit_price": 5}] * 3
        totals = compute_totals(lines, 25)
        assert totals.subtotal == Decimal("15")
        assert totals.vat_amount == Decimal("4")  # 3.75 -> 4

    def test_total_equals_subtotal_plus_vat(self):
        for rate in (0, 6, 12, 25):
            for prices in ([199, 349], [1, 1, 1], [Decimal("99.90"), Decimal("0.10")], [12345]):
                lines = [{"quantity": 2, "unit_price": p} for p in prices]
                totals = compute_totals(lines, rate)
                assert totals.total == totals.subtotal + totals.vat_amount

    def test_repeated_evaluation_is_identical(self):
        lines = [{"quantity": Decimal("2.5"), "unit_price": Decimal("333.33")}]
        first = compute_totals(lines, 25)
        second = compute_totals(lines, 25)
        assert first == second
        assert str(first.vat_amount) == str(second.vat_amount)

    def test_lines_can_be_objects(self):
        class Line:
            quantity = 2
            unit_price = Decimal("100")

        assert compute_totals([Line()], 25).total == Decimal("250")

    def test_empty_quote(self):
        totals = compute_totals([], 25)
        assert totals.subtotal == 0
        assert totals.vat_amount == 0
        assert totals.total == 0

    def test_negative_vat_rate_rejected(self):
        with pytest.raises(InvalidLineItem):
            compute_totals([{"quantity": 1, "unit_price": 100}], -25)


class TestRoundingPolicy:

    def test_half_up_and_half_even_differ_on_ties(self):
        # 2 * 25% = 0.5
        assert VatCalculator("half_up").compute_vat(2, 25) == Decimal("1")
        assert VatCalculator("half_even").compute_vat(2, 25) == Decimal("0")

    def test_quantum_in_oren(self):
        calculator = VatCalculator("half_up", "0.01")
        assert calculator.compute_vat(Decimal("99.99"), 25) == Decimal("25.00")

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            VatCalculator("truncate")


# ===== API =====

class TestQuoteTotalsEndpoint:

    def test_preview(self, client):
        response = client.post("/taxes/quote-totals", json={
            "items": [{"quantity": 1, "unit_price": 5000}, {"quantity": 2, "unit_price": 250}],
            "vat_rate": 25,
        })
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["subtotal"]) == Decimal("5500")
        assert Decimal(data["vat_amount"]) == Decimal("1375")
        assert Decimal(data["total"]) == Decimal("6875")
        assert [Decimal(line["total"]) for line in data["lines"]] == [Decimal("5000"), Decimal("500")]

    def test_default_vat_rate(self, client):
        response = client.post("/taxes/quote-totals", json={"items": [{"quantity": 1, "unit_price": 795}]})
        assert response.status_code == 200
        assert Decimal(response.json()["vat_amount"]) == Decimal("199")

    def test_preview_matches_stored_line_totals(self, client):
        response = client.post("/taxes/quote-totals", json={
            "items": [{"quantity": "1.5", "unit_price": "33.33"}, {"quantity": "0.333", "unit_price": "10.01"}],
        })
        data = response.json()
        assert [Decimal(line["total"]) for line in data["lines"]] == [Decimal("50.00"), Decimal("3.33")]
        assert Decimal(data["subtotal"]) == Decimal("53.33")

    def test_excess_precision_returns_422(self, client):
        response = client.post("/taxes/quote-totals", json={"items": [{"quantity": "0.3333", "unit_price": "10"}]})
        assert response.status_code == 422
        assert response.json()["error"] == "invalid_line_item"

    def test_negative_price_returns_422(self, client):
        response = client.post("/taxes/quote-totals", json={"items": [{"quantity": 1, "unit_price": -10}]})
        assert response.status_code == 422
        body = response.json()
        assert body["ok"] is False
        assert body["error"] == "invalid_line_item"
