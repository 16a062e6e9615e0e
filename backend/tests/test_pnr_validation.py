from datetime import date

import httpx

from support import record, stub_validator
from ticketswapper.services.pnr import detect_operator, names_match, normalize_pnr


def test_normalize_pnr_strips_and_uppercases():
    assert normalize_pnr(" ab-12 34/56 ") == "AB123456"
    assert normalize_pnr(normalize_pnr("ab-123456")) == "AB123456"
    assert normalize_pnr(None) == ""


def test_detect_operator():
    assert detect_operator("AB12345678") == "redbus"
    assert detect_operator("ptm-ab12cd34") == "paytm"
    assert detect_operator("123456") == "unknown"


def test_names_match():
    assert names_match("Asha Rao", "asha rao ")
    assert names_match("Asha Rao", "Asha")
    assert names_match("Asha", "Asha Rao")
    assert names_match("Asha Rao", "")
    assert not names_match("Asha Rao", "Vikram")


def test_invalid_format_never_calls_the_record_store():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    result = stub_validator(handler).validate("AB-12")
    assert result.is_valid is False
    assert result.reason == "invalid_format"
    assert calls == []
    assert stub_validator(handler).validate("A" * 16).reason == "invalid_format"


def test_valid_pnr_returns_trip_data():
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        return httpx.Response(200, json=[record("XY99887766"), record("AB12345678")])

    result = stub_validator(handler).validate("ab 1234-5678", "auto", "asha")
    assert result.is_valid is True
    assert result.confidence == 100
    assert result.api_provider == "api_verified"
    data = result.ticket_data
    assert data.bus_operator == "VRL Travels"
    assert data.from_location == "Bangalore"
    assert data.to_location == "Hyderabad"
    assert data.seat_number == "U7"
    assert data.ticket_price == 1200
    assert seen["headers"]["apikey"] == "records-key"
    assert seen["headers"]["authorization"] == "Bearer records-key"


def test_missing_record_fields_fall_back_to_defaults():
    rec = record("AB12345678", bus_operator=None, departure_date=None, departure_time=None, ticket_price=None)
    result = stub_validator(lambda r: httpx.Response(200, json=[rec])).validate("AB12345678")
    assert result.is_valid
    assert result.ticket_data.bus_operator == "redbus"
    assert result.ticket_data.departure_date == date.today().isoformat()
    assert result.ticket_data.departure_time == "00:00"
    assert result.ticket_data.ticket_price == 0


def test_not_found_lists_available_pnrs():
    handler = lambda r: httpx.Response(200, json=[record("XY99887766"), record("CD55443322")])  # noqa: E731
    result = stub_validator(handler).validate("AB12345678")
    assert result.reason == "not_found"
    assert result.available_pnrs == ["XY99887766", "CD55443322"]
    assert "XY99887766" in result.error

    hidden = stub_validator(handler, echo_available=False).validate("AB12345678")
    assert hidden.reason == "not_found"
    assert hidden.available_pnrs == []
    assert "XY99887766" not in hidden.error


def test_name_mismatch():
    handler = lambda r: httpx.Response(200, json=[record("AB12345678")])  # noqa: E731
    result = stub_validator(handler).validate("AB12345678", "auto", "Vikram Singh")
    assert result.is_valid is False
    assert result.reason == "name_mismatch"
    assert "Asha Rao" in result.error


def test_record_store_failures_are_reported_not_raised():
    def timeout(request):
        raise httpx.ReadTimeout("timed out", request=request)

    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert stub_validator(timeout).validate("AB12345678").reason == "timeout"
    assert stub_validator(refused).validate("AB12345678").reason == "unreachable"
    assert stub_validator(lambda r: httpx.Response(503, text="down")).validate("AB12345678").reason == "api_error"
    assert stub_validator(lambda r: httpx.Response(200, json={"rows": []})).validate("AB12345678").reason == "api_error"
    assert stub_validator(lambda r: httpx.Response(200, text="<html>")).validate("AB12345678").reason == "api_error"
