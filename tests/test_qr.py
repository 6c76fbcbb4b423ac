from __future__ import annotations

from datetime import date

import pytest

from pytrackfit.exceptions import ValidationError
from pytrackfit.models import is_valid_fitting_code, parse_fitting_code


def test_parse_fitting_code_decodes_segments() -> None:
    code = parse_fitting_code(" RC-L2409-20240920-VND001-00042 ")

    assert code.qr_code == "RC-L2409-20240920-VND001-00042"
    assert code.type_code == "RC"
    assert code.type_name == "Elastic Rail Clip"
    assert code.lot_number == "L2409"
    assert code.manufacture_date == date(2024, 9, 20)
    assert code.manufacture_date_display == "20/09/2024"
    assert code.vendor_code == "VND001"
    assert code.serial_number == "00042"


@pytest.mark.parametrize(
    ("qr", "field"),
    [
        ("RC-L2409-20240920-VND001", "qrCode"),
        ("XX-L2409-20240920-VND001-00042", "typeCode"),
        ("SL-L2409-20241340-VND001-00042", "manufactureDate"),
        ("LN-L2409-2024092-VND001-00042", "manufactureDate"),
        ("RP-L2409-20240920-ACME01-00042", "vendorCode"),
        ("RP-L2409-20240920-VND001-42", "serialNumber"),
    ],
)
def test_parse_fitting_code_rejects_bad_segments(qr: str, field: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_fitting_code(qr)

    assert exc_info.value.field == field
    assert not is_valid_fitting_code(qr)
