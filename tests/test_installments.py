import pytest

from actual_installments.domain.installments import (
    compose_schedule_name,
    format_amount,
    installment_span,
    parse_installment,
)
from actual_installments.models import Transaction


def _tx(**overrides):
    data = {
        "id": "tx-1",
        "date": "2024-01-15",
        "amount": -120000,
        "notes": "Laptop (01/03)",
    }
    data.update(overrides)
    return Transaction(**data)


def test_parse_marker():
    info = parse_installment("Store (03/12)")
    assert info is not None
    assert (info.parcel_index, info.parcel_total) == (3, 12)
    assert info.matched_text == "(03/12)"


@pytest.mark.parametrize("notes", [None, "", "Store", "Store (3/12)", "Store (03-12)", "Store 03/12", "(003/12)"])
def test_parse_no_match(notes):
    assert parse_installment(notes) is None


def test_parse_uses_first_marker_only():
    info = parse_installment("Tv (02/10) old (05/06)")
    assert info is not None
    assert (info.parcel_index, info.parcel_total) == (2, 10)


def test_parse_rejects_non_ascii_digits():
    assert parse_installment("Phone (٠١/٠٢)") is None


def test_parse_marker_anywhere_in_notes():
    info = parse_installment("Sofa(10/10)paid")
    assert info is not None
    assert info.is_final
    assert info.remaining == 1


def test_invalid_marker_still_parses_but_flags_it():
    info = parse_installment("Odd (05/03)")
    assert info is not None
    assert not info.is_valid
    assert not parse_installment("Zero (00/03)").is_valid


def test_format_amount_uses_absolute_major_units():
    assert format_amount(-120000) == "1200.00"
    assert format_amount(1005) == "10.05"
    assert format_amount(0) == "0.00"


def test_compose_name_first_installment():
    tx = _tx()
    name = compose_schedule_name(tx, parse_installment(tx.notes))
    assert name == "Laptop: 3 installments of 1200.00 (2024-01:2024-03)"


def test_compose_name_is_identical_across_series():
    first = _tx()
    second = _tx(id="tx-2", date="2024-02-15", notes="Laptop (02/03)")
    third = _tx(id="tx-3", date="2024-03-15", notes="  Laptop   (03/03) ")

    names = {
        compose_schedule_name(tx, parse_installment(tx.notes))
        for tx in (first, second, third)
    }
    assert names == {"Laptop: 3 installments of 1200.00 (2024-01:2024-03)"}


def test_compose_name_without_recomputed_dates_uses_own_month():
    tx = _tx(date="2024-02-15", notes="Laptop (02/03)")
    name = compose_schedule_name(tx, parse_installment(tx.notes), recompute_dates=False)
    assert name.endswith("(2024-02:2024-02)")


def test_compose_name_custom_label_and_currency():
    tx = _tx(notes="Geladeira (01/10)", amount=-25050)
    name = compose_schedule_name(
        tx,
        parse_installment(tx.notes),
        label="parcelas de",
        currency_symbol="R$",
    )
    assert name == "Geladeira: 10 parcelas de R$250.50 (2024-01:2024-10)"


def test_installment_span_crosses_year():
    info = parse_installment("(11/12)")
    assert installment_span("2024-11-05", info) == ("2024-01", "2024-12")
    info = parse_installment("(02/06)")
    assert installment_span("2024-01-20", info) == ("2023-12", "2024-05")


def test_compose_name_requires_date():
    tx = _tx(date=None)
    with pytest.raises(ValueError):
        compose_schedule_name(tx, parse_installment(tx.notes))
