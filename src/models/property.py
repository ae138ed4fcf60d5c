"""Property models.

A property is stored flat (camelCase keys) but validated as common fields plus
a tagged ``details`` variant: ``HouseDetails`` carries every house-only field,
``LandDetails`` carries none and forbids them.
"""

from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Union
from pydantic import ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from src.models.base import CamelModel
from src.utils.parsing import is_coordinate_pair


class PropertyType(str, Enum):
    HOUSE = "house"
    LAND = "land"


class Purpose(str, Enum):
    RENT = "rent"
    SELL = "sell"


class PropertyStatus(str, Enum):
    UNLISTED = "unlisted"
    LISTED = "listed"
    PENDING = "pending"
    SOLD = "sold"
    RENTED = "rented"


PRICE_RANGES = {
    Purpose.RENT: (100_000, 10_000_000),
    Purpose.SELL: (10_000_000, 900_000_000_000),
}

MIN_YEAR_BUILT = 1800

HOUSE_ONLY_FIELDS = (
    "areaBuilt",
    "rooms",
    "bathrooms",
    "kitchens",
    "garages",
    "diningRooms",
    "livingRooms",
    "pools",
    "yearBuilt",
    "fenced",
)

# Set by the system, never by the client
IMMUTABLE_FIELDS = (
    "_id",
    "ownerId",
    "status",
    "publishDate",
    "unPublishDate",
    "statusChangeDate",
    "imagesNames",
    "createdAt",
    "updatedAt",
)


class GeoPoint(CamelModel):
    """GeoJSON point, coordinates are [lng, lat]."""
    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(..., description="[longitude, latitude]")

    @field_validator("coordinates", mode="before")
    @classmethod
    def _exactly_two_numbers(cls, value: Any) -> Any:
        if not is_coordinate_pair(value):
            raise ValueError("Coordinates must be a longitude and a latitude")
        return list(value)


class HouseDetails(CamelModel):
    """Fields that only exist on houses."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    type: Literal["house"] = "house"
    area_built: float = Field(..., gt=0, description="Built surface")
    rooms: int = Field(..., ge=0)
    bathrooms: int = Field(..., ge=0)
    kitchens: int = Field(default=0, ge=0)
    garages: int = Field(default=0, ge=0)
    dining_rooms: int = Field(default=0, ge=0)
    living_rooms: int = Field(default=0, ge=0)
    pools: int = Field(default=0, ge=0)
    year_built: int = Field(..., ge=MIN_YEAR_BUILT)
    fenced: bool = False

    @field_validator("year_built")
    @classmethod
    def _not_in_future(cls, value: int) -> int:
        if value > date.today().year:
            raise ValueError("A property cannot be built in the future")
        return value


class LandDetails(CamelModel):
    """Land has no house fields; setting one is an error."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    type: Literal["land"] = "land"


PropertyDetails = Annotated[Union[HouseDetails, LandDetails], Field(discriminator="type")]


class PropertyInput(CamelModel):
    """Client supplied property, validated once at construction."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    purpose: Purpose
    price: float = Field(..., gt=0)
    location: GeoPoint
    address: str = Field(..., min_length=1)
    area: float = Field(..., gt=0)
    area_unit: str = Field(default="m²")
    title: str = Field(..., min_length=1, max_length=60)
    description: str = Field(..., min_length=1, max_length=1500)
    tags: list[str] = Field(default_factory=list)
    details: PropertyDetails

    @model_validator(mode="before")
    @classmethod
    def _lift_details(cls, data: Any) -> Any:
        """Move the flat ``type`` and house fields into ``details``."""
        if not isinstance(data, dict) or "details" in data:
            return data

        data = dict(data)
        property_type = data.pop("type", None)
        if isinstance(property_type, str):
            property_type = property_type.strip().lower()

        details: dict[str, Any] = {"type": property_type}
        for field in HOUSE_ONLY_FIELDS:
            value = data.pop(field, None)
            if value is not None:
                details[field] = value

        data["details"] = details
        return data

    @field_validator("address")
    @classmethod
    def _lowercase_address(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def _check_purpose_and_price(self) -> "PropertyInput":
        if self.type == PropertyType.LAND and self.purpose == Purpose.RENT:
            raise ValueError("Land can only be sold")

        low, high = PRICE_RANGES[self.purpose]
        if self.price < low:
            raise ValueError(f"A property to {self.purpose.value} cannot cost less than {low}")
        if self.price > high:
            raise ValueError(f"A property to {self.purpose.value} cannot cost more than {high}")
        return self

    @property
    def type(self) -> PropertyType:
        return PropertyType(self.details.type)

    def to_document(self) -> dict:
        """Flatten into the stored document shape."""
        document = self.model_dump(mode="json", by_alias=True, exclude={"details"})
        document.update(self.details.model_dump(mode="json", by_alias=True))
        return document
