"""
Staff Record Model.

Closed record type for one row of the staff sheet. Every value is an
opaque string: dates, ages and numbers are stored exactly as typed in
the sheet and are never parsed.
"""

import re
from typing import Any, ClassVar, Dict, FrozenSet

from pydantic import BaseModel, ConfigDict


_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_identity_number(value: str) -> str:
    """Strip everything except digits (e.g. '840110-07-5583' -> '840110075583')."""
    return _NON_DIGITS.sub("", value or "")


class StaffRecord(BaseModel):
    """
    One staff member, keyed by internal field identifiers.

    Field order matches the canonical column order in staff_columns.json.
    Instances are immutable; use ``with_value`` to get an edited copy.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    BIL: str = ""
    NAMA: str = ""
    NO_KAD_PENGENALAN: str = ""
    JAWATAN: str = ""
    GRED: str = ""
    NO_GAJI: str = ""
    AGAMA: str = ""
    NO_KWSP: str = ""
    TARIKH_PENGESAHAN_LANTIKAN: str = ""
    TARIKH_PENGESAHAN_DALAM_PERKHIDMATAN: str = ""
    TARIKH_TARAF_BERPENCEN: str = ""
    TARIKH_BERSARA: str = ""
    SKIM_PENCEN_KWSP: str = ""
    UMUR_BERSARA: str = ""
    KUATERS_KERAJAAN: str = ""
    NO_TEL: str = ""
    ALAMAT_TERKINI: str = ""
    TARIKH_LANTIKAN_PERTAMA: str = ""
    TARIKH_KENAIKAN_PANGKAT_1: str = ""
    TARIKH_KENAIKAN_PANGKAT_2: str = ""
    TARIKH_KENAIKAN_PANGKAT_3: str = ""
    FASA_1: str = ""
    FASA_2: str = ""
    URUSAN_KENAIKAN_PANGKAT_MANUAL: str = ""
    STATUS_SEMASA_URUSAN: str = ""
    TARIKH_LAPOR_DIRI: str = ""
    TARIKH_KELUAR: str = ""

    # Primary key and login key are fixed once loaded
    READ_ONLY_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"BIL", "NO_KAD_PENGENALAN"})

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(cls.model_fields)

    @classmethod
    def from_values(cls, values: Dict[str, Any]) -> "StaffRecord":
        """Build a record from a loose mapping. Unknown keys are dropped, missing keys default to ''."""
        return cls.model_validate(
            {name: str(values[name]) for name in cls.model_fields if values.get(name) is not None}
        )

    @property
    def identity_number(self) -> str:
        """Identity card number reduced to digits."""
        return normalize_identity_number(self.NO_KAD_PENGENALAN)

    def value_of(self, field_name: str) -> str:
        return getattr(self, field_name)

    def with_value(self, field_name: str, value: str) -> "StaffRecord":
        """Return a copy with one field replaced."""
        return self.model_copy(update={field_name: value})

    def to_dict(self) -> Dict[str, str]:
        return self.model_dump()
