"""
Pydantic schemas for the /track endpoint
"""
from typing import Dict, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator
from pydantic.alias_generators import to_camel

# Opaque custom payload: string keys, arbitrary JSON values
CustomPayload = Dict[str, JsonValue]


def merge_custom_data(
    defaults: Optional[CustomPayload],
    overrides: Optional[CustomPayload],
) -> CustomPayload:
    """Shallow merge where caller-supplied keys override configured defaults."""
    merged: CustomPayload = dict(defaults or {})
    merged.update(overrides or {})
    return merged


class TrackRequest(BaseModel):
    """Event fired by the storefront pixel (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    app_id: Optional[str] = None
    event_name: str = Field(..., min_length=1, max_length=100)
    url: Optional[str] = None
    referrer: Optional[str] = None
    session_id: Optional[str] = Field(None, max_length=200)
    fingerprint: Optional[str] = Field(None, max_length=200)
    visitor_id: Optional[str] = Field(None, max_length=200)
    page_title: Optional[str] = None

    screen_width: Optional[int] = Field(None, ge=0)
    screen_height: Optional[int] = Field(None, ge=0)

    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None

    value: Optional[Union[float, str]] = None
    currency: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[Union[int, str]] = None

    custom_data: Optional[CustomPayload] = None
    properties: Optional[CustomPayload] = None

    @field_validator("event_name")
    @classmethod
    def event_name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("eventName must not be blank")
        return v

    @field_validator("app_id", "session_id", "fingerprint", "visitor_id", "url", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def visitor_fingerprint(self) -> Optional[str]:
        return self.fingerprint or self.visitor_id

    @property
    def payload(self) -> Optional[CustomPayload]:
        """Custom payload as stored on the Event (customData wins over properties)."""
        if self.custom_data is not None:
            return self.custom_data
        return self.properties

    @property
    def numeric_value(self) -> Optional[float]:
        try:
            return float(self.value) if self.value not in (None, "") else None
        except (TypeError, ValueError):
            return None

    @property
    def numeric_quantity(self) -> Optional[int]:
        try:
            return int(float(self.quantity)) if self.quantity not in (None, "") else None
        except (TypeError, ValueError):
            return None

    @property
    def is_test_event(self) -> bool:
        return bool(self.custom_data and self.custom_data.get("test_event") is True)


class TrackResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    event_id: UUID
    pixel_name: str
    website_domain: Optional[str] = None


class ClientContext(BaseModel):
    """Request-derived facts about the sender."""

    ip: Optional[str] = None
    user_agent: str = ""
