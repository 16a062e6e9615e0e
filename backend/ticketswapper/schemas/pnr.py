from pydantic import BaseModel, Field

class VerifiedTicketData(BaseModel):
    bus_operator: str
    departure_date: str
    departure_time: str
    from_location: str
    to_location: str
    passenger_name: str
    seat_number: str
    ticket_price: float = 0

class PnrValidationResult(BaseModel):
    is_valid: bool
    error: str | None = None
    # invalid_format | not_found | name_mismatch | timeout | unreachable | api_error
    reason: str | None = None
    confidence: int | None = None
    api_provider: str | None = None
    ticket_data: VerifiedTicketData | None = None
    available_pnrs: list[str] = Field(default_factory=list)

class PnrVerifyBody(BaseModel):
    pnr: str
    operator: str = "auto"
    passenger_name: str = ""
