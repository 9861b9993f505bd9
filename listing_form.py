"""
Form state for listing a new dress or editing an existing one.

The form collects attributes, keeps picked images until submission, and on
submit uploads the images one after another before writing the listing in a
single create/update call. A failed upload aborts the whole submission.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pydantic import ValidationError

import queries
from errors import ValidationFailedError
from logging_config import get_logger, log_event
from schemas import (
    COMMON_COLORS,
    DRESS_TYPES,
    OTHER_COLOR,
    OTHER_LOCATION,
    PICKUP_LOCATIONS,
    SIZES,
    Dress,
)
from storage import ObjectStorage, PendingImage, upload_image

LOGGER = get_logger(__name__)


def _toggle(values: List[str], value: str) -> List[str]:
    if value in values:
        return [v for v in values if v != value]
    return values + [value]


@dataclass
class ListingForm:
    title: str = ""
    types: List[str] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)
    custom_color: str = ""
    size: str = SIZES[0]
    price: str = ""
    description: str = ""
    images: List[PendingImage] = field(default_factory=list)
    existing_images: List[str] = field(default_factory=list)
    pickup_location: str = ""
    custom_pickup_location: str = ""

    @classmethod
    def from_dress(cls, dress: dict) -> "ListingForm":
        """Prefill the edit form from a stored listing."""
        colors = dress.get("colors") or []
        custom = [c for c in colors if c not in COMMON_COLORS]
        pickup = dress.get("pickup_location") or ""
        image_url = dress.get("image_url") or []
        if isinstance(image_url, str):
            image_url = [image_url]
        return cls(
            title=dress.get("title") or "",
            types=list(dress.get("types") or []),
            colors=[c for c in colors if c in COMMON_COLORS] + ([OTHER_COLOR] if custom else []),
            custom_color=custom[0] if custom else "",
            size=dress.get("size") or SIZES[0],
            price=str(dress["price"]) if dress.get("price") is not None else "",
            description=dress.get("description") or "",
            existing_images=list(image_url),
            pickup_location=pickup if pickup in PICKUP_LOCATIONS else OTHER_LOCATION,
            custom_pickup_location="" if pickup in PICKUP_LOCATIONS else pickup,
        )

    # ---------- Controlled inputs ----------

    def toggle_type(self, dress_type: str) -> None:
        self.types = _toggle(self.types, dress_type)

    def toggle_color(self, color: str) -> None:
        self.colors = _toggle(self.colors, color)

    def remove_color(self, color: str) -> None:
        self.colors = [c for c in self.colors if c != color]

    def add_images(self, images: List[PendingImage]) -> None:
        self.images = self.images + list(images)

    @property
    def previews(self) -> List[str]:
        return self.existing_images + [image.filename for image in self.images]

    def remove_image(self, index: int) -> None:
        """Remove by position in ``previews``: stored images come first."""
        if index < 0 or index >= len(self.previews):
            raise IndexError(index)
        if index < len(self.existing_images):
            del self.existing_images[index]
        else:
            del self.images[index - len(self.existing_images)]

    # ---------- Derived values ----------

    def resolved_colors(self) -> List[str]:
        if OTHER_COLOR in self.colors and self.custom_color.strip():
            return [c for c in self.colors if c != OTHER_COLOR] + [self.custom_color.strip()]
        return list(self.colors)

    def resolved_pickup(self) -> Tuple[str, Optional[str]]:
        if self.pickup_location == OTHER_LOCATION:
            custom = self.custom_pickup_location.strip()
            return custom, custom
        return self.pickup_location, None

    def parsed_price(self) -> float:
        try:
            price = float(self.price)
        except (TypeError, ValueError):
            raise ValidationFailedError("Please enter a valid price") from None
        if not math.isfinite(price):
            raise ValidationFailedError("Please enter a valid price")
        if price < 0:
            raise ValidationFailedError("Price cannot be negative")
        return price

    def validate(self, editing: bool = False) -> None:
        if not self.types:
            raise ValidationFailedError("Please select at least one dress type")
        if not self.colors:
            raise ValidationFailedError("Please select at least one color")
        if not self.images and not (editing and self.existing_images):
            raise ValidationFailedError("Please upload at least one image")
        unknown = [t for t in self.types if t not in DRESS_TYPES]
        if unknown:
            raise ValidationFailedError(f"Unknown dress type: {unknown[0]}")
        if OTHER_COLOR in self.colors and not self.custom_color.strip():
            raise ValidationFailedError("Please enter a custom color")
        if self.size not in SIZES:
            raise ValidationFailedError(f"Unknown size: {self.size}")
        if not self.title.strip():
            raise ValidationFailedError("Please enter a title")
        if not self.description.strip():
            raise ValidationFailedError("Please enter a description")
        if not self.pickup_location:
            raise ValidationFailedError("Please select a pickup location")
        if self.pickup_location == OTHER_LOCATION and not self.custom_pickup_location.strip():
            raise ValidationFailedError("Please enter a pickup location")
        self.parsed_price()

    # ---------- Submission ----------

    def to_dress(self, owner_id: str, image_urls: List[str]) -> Dress:
        pickup_location, custom_pickup = self.resolved_pickup()
        try:
            return Dress(
                owner_id=owner_id,
                title=self.title.strip(),
                types=self.types,
                colors=self.resolved_colors(),
                size=self.size,
                price=self.parsed_price(),
                description=self.description.strip(),
                image_url=image_urls,
                pickup_location=pickup_location,
                custom_pickup_location=custom_pickup,
            )
        except ValidationError as exc:
            raise ValidationFailedError(exc.errors()[0]["msg"]) from None

    def upload_images(self, storage: ObjectStorage) -> List[str]:
        urls = []
        for image in self.images:
            urls.append(upload_image(storage, image))
        return urls

    def submit(self, owner_id: str, storage: ObjectStorage, dress_id: Optional[str] = None) -> dict:
        """Create (or update, when ``dress_id`` is given) the listing."""
        editing = dress_id is not None
        self.validate(editing=editing)
        dress = self.to_dress(owner_id, self.existing_images)
        dress.image_url = self.existing_images + self.upload_images(storage)
        if editing:
            record = dress.model_dump(mode="json", exclude={"owner_id", "is_active"})
            saved = queries.update_dress(dress_id, record)
        else:
            saved = queries.create_dress(dress)
        log_event(
            LOGGER, logging.INFO, "listing.submitted",
            dress_id=saved["_id"], editing=editing, uploaded=len(self.images),
        )
        self.images = []
        self.existing_images = list(saved.get("image_url") or [])
        return saved

    def as_state(self) -> dict:
        return {
            "title": self.title,
            "types": self.types,
            "colors": self.colors,
            "custom_color": self.custom_color,
            "size": self.size,
            "price": self.price,
            "description": self.description,
            "image_previews": self.previews,
            "pickup_location": self.pickup_location,
            "custom_pickup_location": self.custom_pickup_location,
        }
