from __future__ import annotations

from services.flights.ota.services.extract import as_list, dig, first_present, to_float, to_int, to_text


def test_first_present_returns_first_truthy_candidate():
    obj = {"a": {"b": ""}, "c": [{"d": 0}, {"d": 5}], "e": {"f": "x"}}
    assert first_present(obj, "a.b", "c.0.d", "c.1.d", "e.f") == 5


def test_first_present_missing_everywhere_returns_default():
    assert first_present({}, "a.b.c", ["x", 0, "y"], default="dflt") == "dflt"
    assert first_present(None, "a") is None


def test_dig_never_raises_on_shape_mismatch():
    obj = {"a": "string", "b": [1, 2], "c": None}
    assert dig(obj, "a.b.c") is None
    assert dig(obj, "b.5") is None
    assert dig(obj, "c.d") is None
    assert dig(obj, ["b", "x"]) is None
    assert dig(42, "a") is None


def test_array_wrapped_and_single_object_forms_resolve_the_same():
    as_array = {"Pricing": [{"Total": {"Amount": 10}}]}
    as_object = {"Pricing": {"Total": {"Amount": 10}}}
    for obj in (as_array, as_object):
        assert dig(obj, "Pricing.0.Total.Amount") == 10
        assert dig(obj, "Pricing.Total.Amount") == 10


def test_as_list():
    assert as_list(None) == []
    assert as_list({"a": 1}) == [{"a": 1}]
    assert as_list([1, 2]) == [1, 2]


def test_number_and_text_coercion():
    assert to_float("1,250.50") == 1250.5
    assert to_float({"Amount": "12"}) == 12.0
    assert to_float("abc") is None
    assert to_float(float("nan")) is None
    assert to_float(True) is None
    assert to_int("9") == 9
    assert to_text({"content": " ECO "}) == "ECO"
    assert to_text("   ") is None
