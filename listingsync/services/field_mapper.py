from __future__ import annotations

import re
from typing import Iterable

from listingsync.schemas.collection import ImageRef, ListingFields
from listingsync.schemas.crea import CreaListing, CreaMedia, CreaMember, CreaRoom


WATERFRONT_TERMS = ("waterfront", "beachfront", "water front", "beach front")

PHOTO_CATEGORY = "Property Photo"
VIDEO_CATEGORY = "Video Tour Website"

# Webflow multi-image fields hold at most 25 images each
IMAGES_PER_FIELD = 25


def slugify(value: str) -> str:
    s = value.lower()
    s = re.sub(r"[^a-z0-9\s-]", "", s)
    s = re.sub(r"[\s-]+", "-", s)
    return s.strip("-")


def _join(values: Iterable[str] | None) -> str:
    return ", ".join(v for v in (values or []) if v)


def _str_or_none(value: int | float | None) -> str | None:
    return None if value is None else str(value)


def _photos(media: Iterable[CreaMedia]) -> list[ImageRef]:
    return [
        ImageRef(url=m.media_url, alt=m.long_description)
        for m in media
        if m.media_category == PHOTO_CATEGORY and m.media_url
    ]


def _split_images(media: list[CreaMedia]) -> tuple[list[ImageRef], list[ImageRef] | None, list[ImageRef] | None]:
    first = _photos(media[:IMAGES_PER_FIELD])
    second = _photos(media[IMAGES_PER_FIELD:2 * IMAGES_PER_FIELD]) if len(media) > IMAGES_PER_FIELD else None
    third = _photos(media[2 * IMAGES_PER_FIELD:]) if len(media) > 2 * IMAGES_PER_FIELD else None
    return first, second, third


def _video_url(media: Iterable[CreaMedia]) -> str | None:
    for m in media:
        if m.media_category == VIDEO_CATEGORY and m.media_url:
            return m.media_url
    return None


def rooms_html(rooms: Iterable[CreaRoom], level: str) -> str:
    parts = []
    for room in rooms:
        if room.room_level != level:
            continue
        dims = f" <strong>{room.room_dimensions}</strong>" if room.room_dimensions else ""
        parts.append(f"<p>{room.room_type or ''}{dims}</p>")
    return "".join(parts)


def agent_html(agent: CreaMember | None) -> str | None:
    if agent is None:
        return None

    lines = [agent.member_key, agent.display_name, agent.office_phone]
    lines += [s.url_or_id for s in agent.social_media]
    lines.append(agent.modification_timestamp)

    office = agent.office
    if office is not None:
        lines += [
            office.office_name,
            office.office_address1,
            office.office_address2,
            office.office_city,
            office.office_state_or_province,
            office.office_phone,
            office.office_type,
            office.modification_timestamp,
        ]

    return "".join(f"<p>{line}</p>" for line in lines if line)


def _lot_size_text(listing: CreaListing) -> str | None:
    if listing.lot_size_area and listing.lot_size_units == "square feet":
        # grouped, up to three decimals, no trailing zeros
        area = f"{listing.lot_size_area:,.3f}".rstrip("0").rstrip(".")
        return f"{area} sqft."
    return None


def _is_waterfront(remarks: str | None) -> bool:
    text = (remarks or "").lower()
    return any(term in text for term in WATERFRONT_TERMS)


def shape_fields(listing: CreaListing) -> ListingFields:
    """
    Map one CREA listing onto the Webflow listing collection schema.

    Pure: the same listing always yields the same fields. Agent/office
    sub-records must already be resolved on the listing.
    """
    images, images2, images3 = _split_images(listing.media)
    photos = _photos(listing.media)
    agent, agent2 = listing.agent, listing.agent2
    address = listing.unparsed_address or ""

    return ListingFields(
        idnum=listing.listing_key,
        listingid=listing.listing_id,
        agent_name=agent.display_name if agent else None,
        agent_office_name=agent.office.office_name if agent and agent.office else None,
        agent2_name=agent2.display_name if agent2 else None,
        agent2_office_name=agent2.office.office_name if agent2 and agent2.office else None,
        agent_data_full=agent_html(agent),
        agent2_data_full=agent_html(agent2),
        fireplace_present="Yes" if listing.fireplace else "No",
        utility_water=_join(listing.water_source),
        land_size_text=_lot_size_text(listing),
        land_sewer=_join(listing.sewer),
        street_address=listing.unparsed_address,
        city=listing.city,
        community_name=listing.subdivision_name,
        ownership_type=listing.common_interest,
        property_type=listing.property_sub_type,
        zoning_type=listing.zoning,
        bathroom_total=_str_or_none(listing.bathrooms_total),
        bedrooms_total=_str_or_none(listing.bedrooms_total),
        appliances=_join(listing.appliances),
        basement_type=_join(listing.basement),
        constructed_date=_str_or_none(listing.year_built),
        exterior_finish=_join(listing.exterior_features),
        flooring_type=_join(listing.flooring),
        foundation_type=_join(listing.foundation_details),
        heating_type=_join(listing.heating),
        roof_material=_join(listing.roof),
        construction_material=_join(listing.construction_materials),
        parking_space_total=_str_or_none(listing.parking_total),
        images=images,
        images2=images2,
        images3=images3,
        mainimage=photos[0] if photos else None,
        video=_video_url(listing.media),
        public_remarks=listing.public_remarks,
        rooms_above=rooms_html(listing.rooms, "Above"),
        rooms_lower_level=rooms_html(listing.rooms, "Lower level"),
        rooms_main_level=rooms_html(listing.rooms, "Main level"),
        priceint=listing.list_price,
        interior_size=listing.living_area,
        waterfront=_is_waterfront(listing.public_remarks),
        name=address,
        slug=slugify(address) if address else "",
        archived=False,
        draft=False,
    )
