"""PNR verification against the external ticket record store.

The record store is a REST table returning a JSON array of ticket-like rows
(``pnr_number``, ``passenger_name``, ``bus_operator``, ``source_location``,
``destination_location``, ``departure_date``, ``departure_time``,
``seat_number``, ``ticket_price``). It is read in full on every validation;
the match happens locally.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any

import httpx

from ticketswapper.core.config import settings
from ticketswapper.schemas.pnr import PnrValidationResult, VerifiedTicketData

logger = logging.getLogger(__name__)

PNR_MIN_LENGTH = 6
PNR_MAX_LENGTH = 15
API_PROVIDER = "api_verified"

_NON_ALNUM = re.compile(r"[^A-Z0-9]")

OPERATOR_PATTERNS: dict[str, re.Pattern[str]] = {
    "redbus": re.compile(r"^[A-Z]{2}\d{8,10}$"),
    "abhibus": re.compile(r"^[A-Z]{3}\d{6,8}$"),
    "makemytrip": re.compile(r"^MMT\d{8}$"),
    "paytm": re.compile(r"^PTM[A-Z0-9]{8}$"),
    "ksrtc": re.compile(r"^KA\d{8}$"),
    "msrtc": re.compile(r"^MH\d{8}$"),
    "tsrtc": re.compile(r"^TS\d{8}$"),
}


class RecordStoreError(Exception):
    """The record store answered, but not with a usable array of records."""


def normalize_pnr(pnr: str | None) -> str:
    return _NON_ALNUM.sub("", (pnr or "").upper())


def detect_operator(pnr: str) -> str:
    clean = normalize_pnr(pnr)
    for operator_id, pattern in OPERATOR_PATTERNS.items():
        if pattern.match(clean):
            return operator_id
    return "unknown"


def names_match(record_name: str | None, given_name: str | None) -> bool:
    api_name = (record_name or "").strip().lower()
    user_name = (given_name or "").strip().lower()
    if not user_name:
        return True
    return api_name == user_name or user_name in api_name or api_name in user_name


def _str_or(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    return str(value)


class PnrValidator:
    def __init__(self, client: httpx.Client, url: str, api_key: str | None = None, timeout: float = 10.0,
                 echo_available: bool = True) -> None:
        self._client = client
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.echo_available = echo_available

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def fetch_records(self) -> list[dict[str, Any]]:
        """Fetch every record of the external table.

        Raises httpx.TimeoutException / httpx.TransportError on network problems
        and RecordStoreError on a non-2xx status or a body that is not an array.
        """
        response = self._client.get(self.url, headers=self._headers(), timeout=self.timeout)
        if response.status_code >= 400:
            raise RecordStoreError(
                f"API responded with status: {response.status_code} - {response.reason_phrase}. Body: {response.text}"
            )
        try:
            records = response.json()
        except ValueError as e:
            raise RecordStoreError("Invalid API response format: body is not JSON") from e
        if not isinstance(records, list):
            raise RecordStoreError("Invalid API response format: Expected array of tickets")
        logger.debug("Record store returned %d records", len(records))
        return records

    def validate(self, pnr: str | None, operator_hint: str | None = "auto", passenger_name: str | None = "") -> PnrValidationResult:
        clean = normalize_pnr(pnr)
        if not (PNR_MIN_LENGTH <= len(clean) <= PNR_MAX_LENGTH):
            logger.info("Rejected PNR with invalid format (length %d)", len(clean))
            return PnrValidationResult(is_valid=False, reason="invalid_format", error="Invalid PNR format")

        operator = detect_operator(clean)
        if operator_hint and operator_hint.lower() != "auto":
            operator = operator_hint.lower()

        try:
            records = self.fetch_records()
        except httpx.TimeoutException:
            logger.warning("PNR lookup timed out after %ss", self.timeout)
            return PnrValidationResult(
                is_valid=False,
                reason="timeout",
                error=f"API request timed out after {self.timeout:g} seconds. The API server might be slow or unresponsive.",
            )
        except httpx.TransportError as e:
            logger.warning("PNR lookup could not reach the record store: %s", e)
            return PnrValidationResult(
                is_valid=False,
                reason="unreachable",
                error=f"Cannot connect to ticket validation API. The API server might be down or not accessible. Error: {e}",
            )
        except RecordStoreError as e:
            logger.warning("PNR lookup failed: %s", e)
            return PnrValidationResult(
                is_valid=False,
                reason="api_error",
                error=f"API Error: {e}. Please check if the API is running and accessible.",
            )

        match = None
        for record in records:
            if not isinstance(record, dict):
                continue
            if normalize_pnr(str(record.get("pnr_number") or "")) == clean:
                match = record
                break

        if match is None:
            available = [str(r.get("pnr_number")) for r in records if isinstance(r, dict) and r.get("pnr_number")]
            logger.info("PNR %s not found among %d records", clean, len(available))
            message = f'PNR "{clean}" not found in the ticket database.'
            if self.echo_available:
                message += f" Available PNRs: {', '.join(available)}"
            else:
                available = []
            return PnrValidationResult(is_valid=False, reason="not_found", error=message, available_pnrs=available)

        if not names_match(match.get("passenger_name"), passenger_name):
            logger.info("PNR %s found but passenger name does not match", clean)
            return PnrValidationResult(
                is_valid=False,
                reason="name_mismatch",
                error=(
                    f'PNR found but passenger name doesn\'t match. Expected: "{match.get("passenger_name")}", '
                    f'Got: "{passenger_name}". Please verify your details.'
                ),
            )

        price = match.get("ticket_price") or 0
        try:
            price = float(price)
        except (TypeError, ValueError):
            price = 0.0
        ticket_data = VerifiedTicketData(
            bus_operator=_str_or(match.get("bus_operator"), operator or "API_VERIFIED"),
            departure_date=_str_or(match.get("departure_date"), date.today().isoformat()),
            departure_time=_str_or(match.get("departure_time"), "00:00"),
            from_location=_str_or(match.get("source_location"), "Unknown"),
            to_location=_str_or(match.get("destination_location"), "Unknown"),
            passenger_name=_str_or(match.get("passenger_name"), "Unknown"),
            seat_number=_str_or(match.get("seat_number"), "Unknown"),
            ticket_price=price,
        )
        logger.info("PNR %s verified", clean)
        return PnrValidationResult(is_valid=True, confidence=100, api_provider=API_PROVIDER, ticket_data=ticket_data)


def get_pnr_validator():
    """FastAPI dependency yielding a validator bound to a short-lived HTTP client."""
    with httpx.Client() as client:
        yield PnrValidator(
            client,
            url=settings.pnr_api_url,
            api_key=settings.pnr_api_key,
            timeout=settings.pnr_timeout_seconds,
            echo_available=settings.pnr_echo_available,
        )
