from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


FeedType = Literal["member", "national"]


class AccessToken(BaseModel):
    """
    OAuth2 client-credentials token issued by the CREA identity server.

    Passed explicitly to every call that needs it; callers check
    `is_expired()` before reusing it for a later request.
    """
    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: int = Field(default=3600, ge=0)
    scope: str | None = None
    feed: FeedType | None = None
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in)

    def is_expired(self, *, now: datetime | None = None, leeway_seconds: int = 60) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at - timedelta(seconds=leeway_seconds)

    def authorization_header(self) -> dict[str, str]:
        return {"Authorization": f"{self.token_type} {self.access_token}"}


class _CreaRecord(BaseModel):
    # DDF returns PascalCase keys and many fields we never map
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # DDF sends null for empty lists; let field defaults apply instead
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class CreaMedia(_CreaRecord):
    media_key: str | None = Field(default=None, alias="MediaKey")
    media_url: str | None = Field(default=None, alias="MediaURL")
    long_description: str | None = Field(default=None, alias="LongDescription")
    media_category: str | None = Field(default=None, alias="MediaCategory")
    order: int | None = Field(default=None, alias="Order")
    preferred_photo: bool = Field(default=False, alias="PreferredPhotoYN")


class CreaRoom(_CreaRecord):
    room_key: str | None = Field(default=None, alias="RoomKey")
    room_type: str | None = Field(default=None, alias="RoomType")
    room_level: str | None = Field(default=None, alias="RoomLevel")
    room_dimensions: str | None = Field(default=None, alias="RoomDimensions")


class CreaSocialMedia(_CreaRecord):
    url_or_id: str | None = Field(default=None, alias="SocialMediaUrlOrId")
    media_type: str | None = Field(default=None, alias="SocialMediaType")


class CreaOffice(_CreaRecord):
    office_key: str | None = Field(default=None, alias="OfficeKey")
    office_name: str | None = Field(default=None, alias="OfficeName")
    office_address1: str | None = Field(default=None, alias="OfficeAddress1")
    office_address2: str | None = Field(default=None, alias="OfficeAddress2")
    office_city: str | None = Field(default=None, alias="OfficeCity")
    office_state_or_province: str | None = Field(default=None, alias="OfficeStateOrProvince")
    office_phone: str | None = Field(default=None, alias="OfficePhone")
    office_type: str | None = Field(default=None, alias="OfficeType")
    modification_timestamp: str | None = Field(default=None, alias="ModificationTimestamp")


class CreaMember(_CreaRecord):
    """Listing agent (DDF `Member`) with its office resolved."""
    member_key: str = Field(alias="MemberKey")
    office_key: str | None = Field(default=None, alias="OfficeKey")
    first_name: str | None = Field(default=None, alias="MemberFirstName")
    last_name: str | None = Field(default=None, alias="MemberLastName")
    office_phone: str | None = Field(default=None, alias="MemberOfficePhone")
    social_media: list[CreaSocialMedia] = Field(default_factory=list, alias="MemberSocialMedia")
    modification_timestamp: str | None = Field(default=None, alias="ModificationTimestamp")

    office: CreaOffice | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class CreaListing(_CreaRecord):
    """
    One DDF `Property` record.

    `listing_key` is the identity key matched against the collection's
    `idnum` field. Agent sub-records are attached by the listing source
    before mapping runs.
    """
    listing_key: str = Field(min_length=1, alias="ListingKey")
    listing_id: str | None = Field(default=None, alias="ListingId")

    list_agent_key: str | None = Field(default=None, alias="ListAgentKey")
    co_list_agent_key: str | None = Field(default=None, alias="CoListAgentKey")

    # Address
    unparsed_address: str | None = Field(default=None, alias="UnparsedAddress")
    city: str | None = Field(default=None, alias="City")
    subdivision_name: str | None = Field(default=None, alias="SubdivisionName")

    # Classification
    property_sub_type: str | None = Field(default=None, alias="PropertySubType")
    common_interest: str | None = Field(default=None, alias="CommonInterest")
    zoning: str | None = Field(default=None, alias="Zoning")

    # Price / size
    list_price: float | None = Field(default=None, alias="ListPrice")
    living_area: float | None = Field(default=None, alias="LivingArea")
    lot_size_area: float | None = Field(default=None, alias="LotSizeArea")
    lot_size_units: str | None = Field(default=None, alias="LotSizeUnits")

    # Building
    bathrooms_total: int | None = Field(default=None, alias="BathroomsTotalInteger")
    bedrooms_total: int | None = Field(default=None, alias="BedroomsTotal")
    year_built: int | None = Field(default=None, alias="YearBuilt")
    parking_total: int | None = Field(default=None, alias="ParkingTotal")
    fireplace: bool = Field(default=False, alias="FireplaceYN")
    appliances: list[str] = Field(default_factory=list, alias="Appliances")
    basement: list[str] = Field(default_factory=list, alias="Basement")
    exterior_features: list[str] = Field(default_factory=list, alias="ExteriorFeatures")
    flooring: list[str] = Field(default_factory=list, alias="Flooring")
    foundation_details: list[str] = Field(default_factory=list, alias="FoundationDetails")
    heating: list[str] = Field(default_factory=list, alias="Heating")
    roof: list[str] = Field(default_factory=list, alias="Roof")
    construction_materials: list[str] = Field(default_factory=list, alias="ConstructionMaterials")

    # Land / utilities
    water_source: list[str] = Field(default_factory=list, alias="WaterSource")
    sewer: list[str] = Field(default_factory=list, alias="Sewer")

    public_remarks: str | None = Field(default=None, alias="PublicRemarks")

    rooms: list[CreaRoom] = Field(default_factory=list, alias="Rooms")
    media: list[CreaMedia] = Field(default_factory=list, alias="Media")

    agent: CreaMember | None = None
    agent2: CreaMember | None = None

    def agent_keys(self) -> list[str]:
        return [k for k in (self.list_agent_key, self.co_list_agent_key) if k]

    def with_agents(self, agent: CreaMember | None, agent2: CreaMember | None) -> "CreaListing":
        return self.model_copy(update={"agent": agent, "agent2": agent2})

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "CreaListing":
        return cls.model_validate(raw)
