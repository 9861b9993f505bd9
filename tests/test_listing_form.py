"""Listing form validation, prefill and submission."""

import pytest

from errors import UploadFailedError, ValidationFailedError
from listing_form import ListingForm
from schemas import OTHER_COLOR, OTHER_LOCATION
from storage import ObjectStorage, PendingImage
from tests.conftest import BASE_URL, FailingGridFS


def _image(name: str = "gown.JPG", content_type: str = "image/jpeg", size: int = 16) -> PendingImage:
    return PendingImage(filename=name, content_type=content_type, data=b"x" * size)


def _form(**overrides) -> ListingForm:
    values = dict(
        title="Elegant Black Evening Gown",
        types=["Formal", "Party"],
        colors=["Black"],
        size="M",
        price="50",
        description="Floor length satin gown.",
        pickup_location="Sather Gate",
        images=[_image()],
    )
    values.update(overrides)
    return ListingForm(**values)


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"types": []}, "Please select at least one dress type"),
        ({"colors": []}, "Please select at least one color"),
        ({"images": []}, "Please upload at least one image"),
        ({"colors": [OTHER_COLOR]}, "Please enter a custom color"),
        ({"pickup_location": OTHER_LOCATION}, "Please enter a pickup location"),
        ({"price": "fifty"}, "Please enter a valid price"),
        ({"price": "-1"}, "Price cannot be negative"),
        ({"price": "nan"}, "Please enter a valid price"),
        ({"price": "inf"}, "Please enter a valid price"),
        ({"size": "XXL"}, "Unknown size: XXL"),
    ],
)
def test_validation_messages(overrides, message) -> None:
    with pytest.raises(ValidationFailedError) as exc:
        _form(**overrides).validate()
    assert exc.value.message == message


def test_edit_accepts_retained_images_without_new_uploads() -> None:
    form = _form(images=[], existing_images=["http://testserver/storage/dresses/a.jpg"])

    form.validate(editing=True)
    with pytest.raises(ValidationFailedError):
        form.validate(editing=False)


def test_toggles_and_removals() -> None:
    form = ListingForm()
    form.toggle_type("Casual")
    form.toggle_type("Work")
    form.toggle_type("Casual")
    form.toggle_color("Red")
    form.toggle_color("Navy")
    form.remove_color("Red")

    assert form.types == ["Work"]
    assert form.colors == ["Navy"]


def test_custom_color_and_pickup_are_resolved() -> None:
    form = _form(
        colors=["Black", OTHER_COLOR],
        custom_color=" Teal ",
        pickup_location=OTHER_LOCATION,
        custom_pickup_location="Doe Library steps",
    )

    assert form.resolved_colors() == ["Black", "Teal"]
    assert form.resolved_pickup() == ("Doe Library steps", "Doe Library steps")
    assert _form().resolved_pickup() == ("Sather Gate", None)


def test_from_dress_splits_custom_values() -> None:
    form = ListingForm.from_dress({
        "title": "Gown",
        "types": ["Formal"],
        "colors": ["Black", "Teal"],
        "size": "S",
        "price": 45.0,
        "description": "Nice",
        "image_url": "http://testserver/storage/dresses/one.jpg",
        "pickup_location": "Doe Library steps",
    })

    assert form.colors == ["Black", OTHER_COLOR]
    assert form.custom_color == "Teal"
    assert form.pickup_location == OTHER_LOCATION
    assert form.custom_pickup_location == "Doe Library steps"
    assert form.existing_images == ["http://testserver/storage/dresses/one.jpg"]
    assert form.price == "45.0"


def test_remove_image_uses_preview_order() -> None:
    form = _form(existing_images=["u1", "u2"], images=[_image("a.png"), _image("b.png")])

    form.remove_image(1)
    form.remove_image(1)

    assert form.previews == ["u1", "b.png"]
    with pytest.raises(IndexError):
        form.remove_image(5)


def test_submit_uploads_each_image_then_creates(db, dress_bucket) -> None:
    form = _form(images=[_image("one.jpg"), _image("two.PNG", "image/png")])

    saved = form.submit("user-1", dress_bucket)

    assert len(saved["image_url"]) == 2
    assert all(url.startswith(f"{BASE_URL}/storage/dresses/dress-images/") for url in saved["image_url"])
    assert saved["image_url"][1].endswith(".png")
    assert saved["owner_id"] == "user-1"
    assert saved["is_active"] is True
    assert db["dresses"].count_documents({}) == 1
    assert form.images == []


def test_failed_upload_aborts_without_writing(db) -> None:
    bucket = ObjectStorage("dresses", fs=FailingGridFS(fail_after=1), base_url=BASE_URL)
    form = _form(images=[_image("one.jpg"), _image("two.jpg")])

    with pytest.raises(UploadFailedError) as exc:
        form.submit("user-1", bucket)

    assert exc.value.message.startswith("Image upload failed:")
    assert db["dresses"].count_documents({}) == 0
    assert len(form.images) == 2


def test_oversized_image_is_rejected(db, dress_bucket) -> None:
    form = _form(images=[_image(size=10 * 1024 * 1024 + 1)])

    with pytest.raises(UploadFailedError) as exc:
        form.submit("user-1", dress_bucket)

    assert "less than 10MB" in exc.value.message
    assert dress_bucket.fs.put_calls == 0


def test_edit_appends_new_uploads_to_retained_images(db, dress_bucket) -> None:
    created = _form().submit("user-1", dress_bucket)
    form = ListingForm.from_dress(created)
    form.title = "Updated title"
    form.add_images([_image("extra.jpg")])

    saved = form.submit("user-1", dress_bucket, dress_id=created["_id"])

    assert saved["title"] == "Updated title"
    assert saved["image_url"][0] == created["image_url"][0]
    assert len(saved["image_url"]) == 2
    assert db["dresses"].count_documents({}) == 1


def test_non_finite_price_is_rejected_before_any_upload(db, dress_bucket) -> None:
    form = _form(price="-inf")

    with pytest.raises(ValidationFailedError) as exc:
        form.submit("user-1", dress_bucket)

    assert exc.value.message == "Please enter a valid price"
    assert dress_bucket.fs.put_calls == 0
    assert db["dresses"].count_documents({}) == 0


def test_record_errors_surface_as_validation_messages() -> None:
    form = _form(types=[])

    with pytest.raises(ValidationFailedError):
        form.to_dress("user-1", [])
