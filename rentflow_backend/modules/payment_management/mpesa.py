"""M-Pesa STK push callback handling.

Turns the callback body Safaricom posts after an STK push into a payment
source the reconciliation engine understands. Only successful transactions
(ResultCode 0) become payments.
"""

import re
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ...core.exceptions import PaymentRejectedError, ValidationError
from ...core.utils import to_money
from .schemas import CallbackPayment, GatewayCallbackPayment, StkCallbackPayload

# TransactionDate arrives as a number like 20191219102115
TRANSACTION_DATE_FORMAT = "%Y%m%d%H%M%S"

RESULT_CODE_SUCCESS = 0


def format_phone_number(phone_number: str | int) -> str:
    """Normalize a Kenyan phone number to 2547XXXXXXXX form."""
    cleaned = re.sub(r"\D", "", str(phone_number))
    if cleaned.startswith("0"):
        return "254" + cleaned[1:]
    if not cleaned.startswith("254"):
        return "254" + cleaned
    return cleaned


def _parse_transaction_date(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.strptime(str(value), TRANSACTION_DATE_FORMAT)
    except ValueError as e:
        raise ValidationError(
            "Unrecognised transaction date", field="TransactionDate", value=value
        ) from e


def parse_stk_callback(payload: dict[str, Any]) -> CallbackPayment:
    """Extract amount and payment source from an STK push callback.

    Raises:
        ValidationError: If the payload is not an STK callback or lacks a
            required metadata item
        PaymentRejectedError: If the transaction did not succeed
    """
    try:
        callback = StkCallbackPayload.model_validate(payload).body.stk_callback
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid callback data structure", details={"errors": e.errors()}
        ) from e

    if callback.result_code != RESULT_CODE_SUCCESS:
        raise PaymentRejectedError(
            callback.result_desc or "unknown reason",
            result_code=callback.result_code,
            details={"checkout_request_id": callback.checkout_request_id},
        )

    metadata = callback.callback_metadata
    items = {item.name: item.value for item in (metadata.items if metadata else [])}
    for required in ("Amount", "MpesaReceiptNumber"):
        if items.get(required) is None:
            raise ValidationError(f"Callback metadata lacks {required}", field=required)

    try:
        amount = to_money(items["Amount"])
    except ValueError as e:
        raise ValidationError(str(e), field="Amount", value=items["Amount"]) from e

    phone = items.get("PhoneNumber")
    return CallbackPayment(
        amount=amount,
        source=GatewayCallbackPayment(
            receipt_number=str(items["MpesaReceiptNumber"]),
            phone_number=format_phone_number(phone) if phone is not None else None,
            checkout_request_id=callback.checkout_request_id,
            merchant_request_id=callback.merchant_request_id,
            paid_at=_parse_transaction_date(items.get("TransactionDate")),
        ),
    )
