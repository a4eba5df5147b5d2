from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union


RECORD_KINDS: List[str] = ["dispatch", "material", "diesel"]

# Front-end (camelCase) key -> dataclass field.
CAMEL_FIELDS = {
    "vehicleNo": "vehicle_no",
    "inTime": "in_time",
    "outTime": "out_time",
    "dieselIssued": "diesel_issued",
    "materialType": "material_type",
}
SNAKE_FIELDS = {v: k for k, v in CAMEL_FIELDS.items()}


def _pick(raw: Mapping[str, Any], name: str, default: Any = None) -> Any:
    if name in raw:
        return raw[name]
    camel = SNAKE_FIELDS.get(name)
    if camel and camel in raw:
        return raw[camel]
    return default


def _as_number(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return float(value or 0)


def _camelize(data: Dict[str, Any]) -> Dict[str, Any]:
    return {SNAKE_FIELDS.get(k, k): v for k, v in data.items()}


@dataclass(frozen=True)
class DispatchRecord:
    date: str
    vehicle_no: str
    in_time: str
    out_time: str
    quantity: float
    location: str
    owner: Optional[str] = None

    kind = "dispatch"

    def to_dict(self) -> Dict[str, Any]:
        return _camelize(
            {
                "date": self.date,
                "vehicle_no": self.vehicle_no,
                "in_time": self.in_time,
                "out_time": self.out_time,
                "quantity": self.quantity,
                "location": self.location,
                "owner": self.owner,
            }
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DispatchRecord":
        return cls(
            date=str(raw["date"]),
            vehicle_no=str(_pick(raw, "vehicle_no", "")),
            in_time=str(_pick(raw, "in_time", "")),
            out_time=str(_pick(raw, "out_time", "")),
            quantity=float(_pick(raw, "quantity", 0) or 0),
            location=str(_pick(raw, "location", "")),
            owner=_pick(raw, "owner"),
        )


@dataclass(frozen=True)
class DieselRecord:
    date: str
    vehicle_no: str
    diesel_issued: float
    owner: Optional[str] = None

    kind = "diesel"

    def to_dict(self) -> Dict[str, Any]:
        return _camelize(
            {
                "date": self.date,
                "vehicle_no": self.vehicle_no,
                "diesel_issued": self.diesel_issued,
                "owner": self.owner,
            }
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DieselRecord":
        return cls(
            date=str(raw["date"]),
            vehicle_no=str(_pick(raw, "vehicle_no", "")),
            diesel_issued=_as_number(_pick(raw, "diesel_issued", 0)),
            owner=_pick(raw, "owner"),
        )


@dataclass(frozen=True)
class MaterialRecord:
    date: str
    vehicle_no: str
    material_type: str
    quantity: float
    unit: str
    owner: Optional[str] = None

    kind = "material"

    def to_dict(self) -> Dict[str, Any]:
        return _camelize(
            {
                "date": self.date,
                "vehicle_no": self.vehicle_no,
                "material_type": self.material_type,
                "quantity": self.quantity,
                "unit": self.unit,
                "owner": self.owner,
            }
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "MaterialRecord":
        return cls(
            date=str(raw["date"]),
            vehicle_no=str(_pick(raw, "vehicle_no", "")),
            material_type=str(_pick(raw, "material_type", "")),
            quantity=float(_pick(raw, "quantity", 0) or 0),
            unit=str(_pick(raw, "unit", "Tons")),
            owner=_pick(raw, "owner"),
        )


DatedRecord = Union[DispatchRecord, DieselRecord, MaterialRecord]

# Field summed for the dashboard total of each kind.
QUANTITY_FIELDS = {
    "dispatch": "quantity",
    "diesel": "diesel_issued",
    "material": "quantity",
}


def record_to_dict(record: Any) -> Dict[str, Any]:
    if hasattr(record, "to_dict"):
        return record.to_dict()
    return dict(record)


# ---------------- Demo data ----------------
SAMPLE_DISPATCH: List[DispatchRecord] = [
    DispatchRecord("15/01/2025", "OD-05-1234", "08:30", "17:45", 25.5, "Bhubaneswar"),
    DispatchRecord("14/01/2025", "OD-05-5678", "09:15", "18:20", 30.2, "Cuttack"),
    DispatchRecord("13/01/2025", "OD-05-9012", "07:45", "16:30", 28.7, "Rourkela"),
    DispatchRecord("12/01/2025", "OD-05-3456", "10:00", "19:15", 22.8, "Sambalpur"),
    DispatchRecord("18/01/2025", "OD-05-7890", "09:00", "18:00", 35.0, "Berhampur"),
    DispatchRecord("25/01/2025", "OD-05-1111", "08:15", "17:30", 28.5, "Angul"),
]

SAMPLE_DIESEL: List[DieselRecord] = [
    DieselRecord("15/01/2025", "OD-05-1234", 150),
    DieselRecord("14/01/2025", "OD-05-5678", 175),
    DieselRecord("13/01/2025", "OD-05-9012", 160),
    DieselRecord("12/01/2025", "OD-05-3456", 140),
    DieselRecord("18/01/2025", "OD-05-7890", 180),
    DieselRecord("25/01/2025", "OD-05-1111", 165),
]

SAMPLE_MATERIAL: List[MaterialRecord] = [
    MaterialRecord("15/01/2025", "OD-05-1234", "Iron Ore", 25.5, "Tons"),
    MaterialRecord("14/01/2025", "OD-05-5678", "Coal", 30.2, "Tons"),
    MaterialRecord("13/01/2025", "OD-05-9012", "Limestone", 28.7, "Tons"),
    MaterialRecord("12/01/2025", "OD-05-3456", "Iron Ore", 22.8, "Tons"),
    MaterialRecord("18/01/2025", "OD-05-7890", "Coal", 35.0, "Tons"),
    MaterialRecord("25/01/2025", "OD-05-1111", "Bauxite", 28.5, "Tons"),
]


def sample_records() -> Dict[str, List[DatedRecord]]:
    return {
        "dispatch": list(SAMPLE_DISPATCH),
        "material": list(SAMPLE_MATERIAL),
        "diesel": list(SAMPLE_DIESEL),
    }
