from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    partner_id: str = ""
    password: str = ""


class SessionModel(BaseModel):
    user_id: str
    role: str
    display_name: str
    is_admin: bool = False
    is_partner: bool = False


class LoginResponse(BaseModel):
    token: str
    session: SessionModel
    redirect: str


class SelectorModel(BaseModel):
    year: Optional[int] = None
    month: Optional[int] = None
    date_range: str = "1-15"


class SaveRequest(BaseModel):
    headers: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    row_numbers: List[int] = Field(default_factory=list)


class SaveResponse(BaseModel):
    kind: str
    saved: int
    rejected: List[Dict[str, Any]] = Field(default_factory=list)
    owners: List[str] = Field(default_factory=list)


class OptionModel(BaseModel):
    value: str
    label: str


class PeriodsResponse(BaseModel):
    months: List[OptionModel]
    years: List[int]
    date_ranges: List[OptionModel]
    defaults: SelectorModel
