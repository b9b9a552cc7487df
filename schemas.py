"""
Database Schemas for CPM Inventory

Each Pydantic model represents a MongoDB collection. The collection name is the lowercase kind name.
Field defaults double as the values written by PUT for omitted fields.
"""
from dataclasses import dataclass
from typing import Dict, List, Type, Union

from pydantic import BaseModel, Field, create_model


class TypeAndPrice(BaseModel):
    type: str = Field("", description="Material grade or variant")
    price: Union[float, str] = Field(0.0, description="Price for this variant")


class Entry(BaseModel):
    """Fields shared by every listing kind."""
    name: str = Field("", description="Listing display name")
    description: str = Field("", description="Free text shown on the listing page")
    imageUrl: str = Field("", description="URL (or data URL) of the listing image")
    listingWebsites: Union[str, List[str]] = Field("", description="External sites the listing is posted on")
    urlEnd: str = Field("", description="Public slug, unique across all listing kinds")
    isActive: bool = Field(False, description="Whether the listing is shown publicly")


class Hauling(Entry):
    price: Union[float, str] = Field(0.0, description="Flat hauling price")


class Materials(Entry):
    typesAndPrices: List[TypeAndPrice] = Field(default_factory=list, description="Available types with their prices")


class Properties(Entry):
    price: Union[float, str] = Field(0.0, description="Asking price")
    address: str = Field("", description="Street address of the property")


class Equipment(Entry):
    price: Union[float, str] = Field(0.0, description="Rental or sale price")


def _create_model(model: Type[Entry]) -> Type[Entry]:
    # POST body: same fields, but a name is required
    return create_model(
        f"{model.__name__}Create",
        __base__=model,
        name=(str, Field(..., min_length=1, description="Listing display name")),
    )


@dataclass(frozen=True)
class Kind:
    collection: str
    model: Type[Entry]
    label: str

    @property
    def create_schema(self) -> Type[Entry]:
        return CREATE_MODELS[self.collection]

    @property
    def title(self) -> str:
        return self.label[0].upper() + self.label[1:]


KINDS: Dict[str, Kind] = {
    "hauling": Kind("hauling", Hauling, "hauling entry"),
    "materials": Kind("materials", Materials, "material"),
    "properties": Kind("properties", Properties, "property"),
    "equipment": Kind("equipment", Equipment, "equipment"),
}

CREATE_MODELS: Dict[str, Type[Entry]] = {name: _create_model(kind.model) for name, kind in KINDS.items()}
