from datetime import date

from bdayfeed.birthday import Birthday
from bdayfeed.contacts import ExtractionStatus, extract, extract_all

TODAY = date(2024, 6, 1)


def vcard(*lines: str) -> str:
    return "\r\n".join(["BEGIN:VCARD", "VERSION:3.0", *lines, "END:VCARD"]) + "\r\n"


def test_extract_contact_with_full_date() -> None:
    result = extract(vcard("FN:Alice Example", "BDAY:1990-06-15"), TODAY)

    assert result.status is ExtractionStatus.OK
    contact = result.occurrence
    assert contact.full_name == "Alice Example"
    assert contact.birthday == Birthday(month=6, day=15, year=1990)
    assert contact.next_occurrence == date(2024, 6, 15)
    assert contact.age == 34


def test_extract_handles_value_date_parameter_and_compact_form() -> None:
    result = extract(vcard("FN:Bob", "BDAY;VALUE=date:19900101"), TODAY)

    assert result.ok
    assert result.occurrence.next_occurrence == date(2025, 1, 1)
    assert result.occurrence.age == 35


def test_extract_yearless_birthday() -> None:
    result = extract(vcard("FN:Carol", "BDAY:--0615"), TODAY)

    assert result.ok
    assert result.occurrence.next_occurrence == date(2024, 6, 15)
    assert result.occurrence.age is None


def test_extract_skips_record_without_birthday() -> None:
    result = extract(vcard("FN:Dave", "TEL:+49 30 123456"), TODAY)

    assert result.status is ExtractionStatus.SKIP
    assert result.occurrence is None


def test_extract_reports_malformed_birthday() -> None:
    result = extract(vcard("FN:Eve", "BDAY:1990-14-01"), TODAY)

    assert result.status is ExtractionStatus.ERROR
    assert "Eve" in result.reason


def test_missing_name_gives_empty_string() -> None:
    result = extract(vcard("BDAY:--1224"), TODAY)

    assert result.ok
    assert result.occurrence.full_name == ""


def test_name_falls_back_to_structured_name() -> None:
    result = extract(vcard("N:Example;Frank;;;", "BDAY:--1224"), TODAY)

    assert result.occurrence.full_name == "Frank Example"


def test_folded_and_escaped_lines_are_unfolded() -> None:
    record = vcard("FN:Grace Hopper\\, Rear", " Admiral", "BDAY:1906-12-09")

    result = extract(record, TODAY)

    assert result.occurrence.full_name == "Grace Hopper, RearAdmiral"
    assert result.occurrence.age == 118


def test_grouped_birthday_property_is_found() -> None:
    result = extract(vcard("FN:Heidi", "item1.BDAY:2001-07-04"), TODAY)

    assert result.ok
    assert result.occurrence.age == 23


def test_apple_omit_year_is_treated_as_yearless() -> None:
    result = extract(vcard("FN:Ivan", "BDAY;X-APPLE-OMIT-YEAR=1604:1604-08-20"), TODAY)

    assert result.ok
    assert result.occurrence.birthday == Birthday(month=8, day=20)
    assert result.occurrence.age is None


def test_unreadable_non_birthday_lines_are_ignored() -> None:
    result = extract(vcard("FN:Judy", "TEL;HOME;VOICE:555-1234", "BDAY:1980-02-02"), TODAY)

    assert result.ok
    assert result.occurrence.full_name == "Judy"


def test_birthday_with_bare_parameter_keeps_its_value() -> None:
    result = extract(vcard("FN:Kim", "BDAY;X-X:1990-06-15"), TODAY)

    assert result.status is ExtractionStatus.OK
    assert result.occurrence.birthday == Birthday(month=6, day=15, year=1990)
    assert result.occurrence.age == 34


def test_vcard_uid_is_carried_over() -> None:
    with_uid = extract(vcard("UID:urn:uuid:4fbe8971", "FN:Lena", "BDAY:--0701"), TODAY)
    without_uid = extract(vcard("FN:Lena", "BDAY:--0701"), TODAY)

    assert with_uid.occurrence.uid == "urn:uuid:4fbe8971"
    assert without_uid.occurrence.uid == ""


def test_extract_all_keeps_order_and_continues_past_bad_records() -> None:
    records = [
        vcard("FN:First", "BDAY:--0701"),
        vcard("FN:No Birthday"),
        vcard("FN:Broken", "BDAY:not-a-date"),
        vcard("FN:Last", "BDAY:1970-06-02"),
    ]

    contacts = extract_all(records, TODAY)

    assert [contact.full_name for contact in contacts] == ["First", "Last"]
    assert contacts[1].age == 54


def test_extract_all_of_nothing_is_empty() -> None:
    assert extract_all([], TODAY) == []
