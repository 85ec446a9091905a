from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# Collection field that mirrors CreaListing.listing_key
LISTING_KEY_FIELD = "idnum"

# Fields owned by the store once an item exists; never overwritten on update
IDENTITY_FIELDS = ("slug", "name")


class ImageRef(BaseModel):
    url: str
    alt: str | None = None


class CollectionItem(BaseModel):
    """
    One item of the Webflow listings collection.

    The store is authoritative for `id` and `slug`; every other collection
    field lives in `field_data`.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1, alias="_id")
    slug: str | None = None
    name: str | None = None
    field_data: dict[str, Any] = Field(default_factory=dict)

    @property
    def listing_key(self) -> str | None:
        value = self.field_data.get(LISTING_KEY_FIELD)
        return str(value) if value not in (None, "") else None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "CollectionItem":
        """
        Accept both the flat v1 item shape ({"_id", "slug", "name", ...fields})
        and the nested shape ({"id", "fieldData": {...}}).
        """
        if "fieldData" in raw:
            data = dict(raw.get("fieldData") or {})
            return cls(
                id=raw.get("id") or raw.get("_id"),
                slug=data.get("slug"),
                name=data.get("name"),
                field_data=data,
            )

        data = {k: v for k, v in raw.items() if k not in ("_id", "id")}
        return cls(
            id=raw.get("_id") or raw.get("id"),
            slug=data.get("slug"),
            name=data.get("name"),
            field_data=data,
        )


class ListingFields(BaseModel):
    """
    Webflow field schema for one listing (the FieldSet).

    Attribute names are Python-safe; aliases are the collection field slugs
    sent over the wire (`to_payload()`).
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    idnum: str
    listingid: str | None = None

    agent_name: str | None = Field(default=None, alias="agentdetails-name")
    agent_office_name: str | None = Field(default=None, alias="agentdetails-office-name")
    agent2_name: str | None = Field(default=None, alias="agent2details-name")
    agent2_office_name: str | None = Field(default=None, alias="agent2details-office-name")
    agent_data_full: str | None = Field(default=None, alias="agent-data-full")
    agent2_data_full: str | None = Field(default=None, alias="agent2-data-full")

    fireplace_present: str = Field(default="No", alias="building-fireplacepresent")
    utility_water: str | None = Field(default=None, alias="building-utilitywater")
    land_size_text: str | None = Field(default=None, alias="land-sizetotaltext")
    land_sewer: str | None = Field(default=None, alias="land-sewer")

    street_address: str | None = Field(default=None, alias="address-streetaddress")
    city: str | None = Field(default=None, alias="address-city")
    community_name: str | None = Field(default=None, alias="address-communityname")

    ownership_type: str | None = Field(default=None, alias="ownershiptype")
    property_type: str | None = Field(default=None, alias="propertytype")
    zoning_type: str | None = Field(default=None, alias="zoningtype")

    bathroom_total: str | None = Field(default=None, alias="building-bathroomtotal")
    bedrooms_total: str | None = Field(default=None, alias="building-bedroomstotal")
    appliances: str | None = Field(default=None, alias="building-appliances")
    basement_type: str | None = Field(default=None, alias="building-basementtype")
    constructed_date: str | None = Field(default=None, alias="building-constructeddate")
    exterior_finish: str | None = Field(default=None, alias="building-exteriorfinish")
    flooring_type: str | None = Field(default=None, alias="building-flooringtype")
    foundation_type: str | None = Field(default=None, alias="building-foundationtype")
    heating_type: str | None = Field(default=None, alias="building-heatingtype")
    roof_material: str | None = Field(default=None, alias="building-roofmaterial")
    construction_material: str | None = Field(default=None, alias="building-constructionmaterial")
    parking_space_total: str | None = Field(default=None, alias="parkingspacetotal")

    images: list[ImageRef] = Field(default_factory=list)
    images2: list[ImageRef] | None = None
    images3: list[ImageRef] | None = None
    mainimage: ImageRef | None = None
    video: str | None = None

    public_remarks: str | None = Field(default=None, alias="publicremarks-2")
    rooms_above: str = Field(default="", alias="rooms-above-3")
    rooms_lower_level: str = Field(default="", alias="rooms-lowerlevel-3")
    rooms_main_level: str = Field(default="", alias="rooms-mainlevel-3")

    priceint: float | None = None
    interior_size: float | None = Field(default=None, alias="building-sizeinterior-int")
    waterfront: bool = False

    name: str = ""
    slug: str = ""
    archived: bool = Field(default=False, alias="_archived")
    draft: bool = Field(default=False, alias="_draft")

    def with_identity_of(self, item: CollectionItem) -> "ListingFields":
        """Keep the existing item's store-owned identity fields."""
        return self.model_copy(update={
            "name": item.name if item.name is not None else self.name,
            "slug": item.slug if item.slug is not None else self.slug,
        })

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
