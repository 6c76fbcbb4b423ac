"""Track fitting QR code model.

Fitting labels encode ``TYPE-LOT-YYYYMMDD-VENDOR-SERIAL``, for example
``RC-L2409-20240920-VND001-00042``.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import Field

from pytrackfit._constants import FITTING_TYPES
from pytrackfit.exceptions import ValidationError
from pytrackfit.models._base import TrackfitBaseModel

_LOT_RE = re.compile(r"^\w+$")
_DATE_RE = re.compile(r"^\d{8}$")
_VENDOR_RE = re.compile(r"^VND\d{3}$")
_SERIAL_RE = re.compile(r"^\d{5}$")


class FittingCode(TrackfitBaseModel):
    """Decoded fitting label."""

    qr_code: str
    type_code: str
    type_name: str
    lot_number: str
    manufacture_date: date
    vendor_code: str
    serial_number: str = Field(min_length=5, max_length=5)

    @property
    def manufacture_date_display(self) -> str:
        """Manufacture date as ``DD/MM/YYYY``."""
        return self.manufacture_date.strftime("%d/%m/%Y")


def parse_fitting_code(qr_data: str) -> FittingCode:
    """Parse and validate a fitting QR payload.

    Raises :class:`~pytrackfit.exceptions.ValidationError` naming the
    offending segment when the payload is malformed.
    """
    if not isinstance(qr_data, str):
        raise ValidationError("QR code must be a string", field="qrCode")
    qr = qr_data.strip()
    parts = qr.split("-")
    if len(parts) != 5:
        raise ValidationError(f"Invalid QR code format: {qr!r}", field="qrCode")

    type_code, lot, raw_date, vendor, serial = parts
    if type_code not in FITTING_TYPES:
        raise ValidationError(f"Invalid fitting type: {type_code!r}", field="typeCode")
    if not _LOT_RE.match(lot):
        raise ValidationError(f"Invalid lot number: {lot!r}", field="lotNumber")
    if not _DATE_RE.match(raw_date):
        raise ValidationError(f"Invalid manufacture date: {raw_date!r}", field="manufactureDate")
    try:
        manufactured = datetime.strptime(raw_date, "%Y%m%d").date()
    except ValueError as exc:
        raise ValidationError(f"Invalid manufacture date: {raw_date!r}", field="manufactureDate") from exc
    if not _VENDOR_RE.match(vendor):
        raise ValidationError(f"Invalid vendor code: {vendor!r}", field="vendorCode")
    if not _SERIAL_RE.match(serial):
        raise ValidationError(f"Invalid serial number: {serial!r}", field="serialNumber")

    return FittingCode(
        qr_code=qr,
        type_code=type_code,
        type_name=FITTING_TYPES[type_code],
        lot_number=lot,
        manufacture_date=manufactured,
        vendor_code=vendor,
        serial_number=serial,
    )


def is_valid_fitting_code(qr_data: str) -> bool:
    try:
        parse_fitting_code(qr_data)
    except ValidationError:
        return False
    return True
