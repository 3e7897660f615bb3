"""
Pydantic models for RelayBackend routes.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SetupSessionRequest(BaseModel):
    # Clients may send the code as a JSON number.
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    phone_code: Optional[str] = Field(None, alias="phoneCode", description="One-time login code sent by Telegram")
