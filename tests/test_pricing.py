import pytest

from pricing import calc_prices, order_display_summary, to_display


def test_calc_prices_adds_shipping_below_threshold():
    prices = calc_prices([
        {"price": 40.0, "quantity": 1},
        {"price": 20.0, "quantity": 2},
    ])
    assert prices == {
        "items_price": 80.0,
        "shipping_price": 10.0,
        "tax_price": 12.0,
        "total_price": 102.0,
    }


def test_calc_prices_free_shipping_above_threshold():
    prices = calc_prices([{"price": 60.0, "quantity": 2}])
    assert prices["items_price"] == 120.0
    assert prices["shipping_price"] == 0.0
    assert prices["tax_price"] == 18.0
    assert prices["total_price"] == 138.0


def test_calc_prices_exactly_at_threshold_still_pays_shipping():
    prices = calc_prices([{"price": 100.0, "quantity": 1}])
    assert prices["shipping_price"] == 10.0


def test_calc_prices_rounds_to_cents():
    prices = calc_prices([{"price": 3.33, "quantity": 3}])
    assert prices["items_price"] == 9.99
    assert prices["tax_price"] == 1.5
    assert prices["total_price"] == 21.49


@pytest.mark.parametrize("amount, rate, expected", [
    (102.0, 83, 8466),
    (10.25, 83, 851),
    (0.5, 1, 1),
    (0, 83, 0),
])
def test_to_display(amount, rate, expected):
    assert to_display(amount, rate) == expected


def test_display_total_equals_sum_of_converted_lines():
    order = {
        "order_items": [
            {"product_id": "a", "name": "Headphones", "quantity": 1, "price": 40.0},
            {"product_id": "b", "name": "Cable", "quantity": 2, "price": 20.0},
        ],
        **calc_prices([{"price": 40.0, "quantity": 1}, {"price": 20.0, "quantity": 2}]),
    }

    summary = order_display_summary(order, rate=83)

    assert [item["total"] for item in summary["items"]] == [3320, 3320]
    assert summary["items_price"] == sum(item["total"] for item in summary["items"])
    assert summary["total_price"] == 8466


def test_display_line_total_is_rounded_once():
    order = {
        "order_items": [{"product_id": "a", "name": "Socks", "quantity": 3, "price": 10.25}],
        "items_price": 30.75,
    }

    summary = order_display_summary(order, rate=83)

    assert summary["items"][0]["unit_price"] == 851
    assert summary["items"][0]["total"] == 2552
    assert summary["items_price"] == 2552
