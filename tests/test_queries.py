"""Data access against an in-memory database."""

from datetime import date

import pytest

import queries
from errors import NotFoundError
from schemas import Availability, AvailabilityStatus, Dress, DressFilters


def _dress(**overrides) -> Dress:
    values = dict(
        owner_id="owner-1",
        title="Red cocktail dress",
        types=["Party"],
        colors=["Red"],
        size="S",
        price=30,
        description="Knee length",
        image_url=["http://testserver/storage/dresses/dress-images/a.jpg"],
        pickup_location="Sproul Plaza",
    )
    values.update(overrides)
    return Dress(**values)


@pytest.fixture
def catalog(db):
    return {
        "party": queries.create_dress(_dress()),
        "formal": queries.create_dress(_dress(title="Navy gown", types=["Formal", "Party"], colors=["Navy", "Silver"], size="M", price=80)),
        "work": queries.create_dress(_dress(title="Sheath", types=["Work"], colors=["Black"], size="L", price=20, owner_id="owner-2")),
    }


def _titles(items):
    return sorted(item["title"] for item in items)


def test_create_and_get_dress(catalog) -> None:
    dress = queries.get_dress(catalog["party"]["_id"])

    assert dress["title"] == "Red cocktail dress"
    assert dress["dress_availability"] == []
    assert "created_at" in dress


def test_get_dress_unknown_or_malformed_id(db) -> None:
    with pytest.raises(NotFoundError):
        queries.get_dress("not-an-object-id")
    with pytest.raises(NotFoundError):
        queries.get_dress("65f000000000000000000000")


def test_filters_by_containment_membership_and_price(catalog) -> None:
    assert _titles(queries.get_dresses()) == ["Navy gown", "Red cocktail dress", "Sheath"]
    assert _titles(queries.get_dresses(DressFilters(types=["Party"]))) == ["Navy gown", "Red cocktail dress"]
    assert _titles(queries.get_dresses(DressFilters(types=["Party", "Formal"]))) == ["Navy gown"]
    assert _titles(queries.get_dresses(DressFilters(colors=["Navy", "Silver"]))) == ["Navy gown"]
    assert _titles(queries.get_dresses(DressFilters(sizes=["S", "L"]))) == ["Red cocktail dress", "Sheath"]
    assert _titles(queries.get_dresses(DressFilters(min_price=25, max_price=50))) == ["Red cocktail dress"]


def test_zero_price_bounds_are_ignored(catalog) -> None:
    assert len(queries.get_dresses(DressFilters(min_price=0, max_price=0))) == 3


def test_available_filter_uses_open_availability_records(catalog) -> None:
    queries.create_availability(Availability(
        dress_id=catalog["work"]["_id"], start_date=date(2030, 1, 1), end_date=date(2030, 1, 5),
    ))
    queries.create_availability(Availability(
        dress_id=catalog["party"]["_id"], start_date=date(2030, 1, 1), end_date=date(2030, 1, 5),
        is_available=False, status=AvailabilityStatus.rented,
    ))

    assert _titles(queries.get_dresses(DressFilters(is_available=True))) == ["Sheath"]


def test_soft_delete_hides_from_browsing_only(catalog) -> None:
    dress_id = catalog["party"]["_id"]
    queries.delete_dress(dress_id)

    assert "Red cocktail dress" not in _titles(queries.get_dresses())
    assert queries.get_dress(dress_id)["is_active"] is False
    assert len(queries.get_owner_dresses("owner-1")) == 1
    assert len(queries.get_owner_dresses("owner-1", include_inactive=True)) == 2


def test_update_dress(catalog) -> None:
    updated = queries.update_dress(catalog["work"]["_id"], {"price": 25.5})

    assert updated["price"] == 25.5
    with pytest.raises(NotFoundError):
        queries.update_dress("65f000000000000000000000", {"price": 1})


def test_availability_records_are_sorted_and_updatable(catalog) -> None:
    dress_id = catalog["formal"]["_id"]
    later = queries.create_availability(Availability(dress_id=dress_id, start_date=date(2030, 2, 1), end_date=date(2030, 2, 3)))
    queries.create_availability(Availability(dress_id=dress_id, start_date=date(2030, 1, 1), end_date=date(2030, 1, 2)))

    records = queries.get_dress_availability(dress_id)
    assert [r["start_date"] for r in records] == ["2030-01-01", "2030-02-01"]
    assert queries.get_dress(dress_id)["dress_availability"][0]["start_date"] == "2030-01-01"

    changed = queries.update_availability(later["_id"], {"status": "reserved", "is_available": False, "renter_id": "renter-9"})
    assert changed["status"] == "reserved"
    assert changed["renter_id"] == "renter-9"


def test_check_availability_detects_overlap(catalog) -> None:
    dress_id = catalog["formal"]["_id"]
    queries.create_availability(Availability(
        dress_id=dress_id, start_date=date(2030, 3, 10), end_date=date(2030, 3, 12), is_available=False,
    ))

    assert queries.check_availability(dress_id, date(2030, 3, 1), date(2030, 3, 9))
    assert not queries.check_availability(dress_id, date(2030, 3, 12), date(2030, 3, 14))
    assert not queries.check_availability(dress_id, date(2030, 3, 1), date(2030, 3, 31))
    assert queries.check_availability(dress_id, date(2030, 3, 13), date(2030, 3, 20))


def test_unavailable_dates_expand_blocking_ranges(catalog) -> None:
    dress_id = catalog["formal"]["_id"]
    queries.create_availability(Availability(dress_id=dress_id, start_date=date(2030, 3, 30), end_date=date(2030, 4, 1), is_available=False))
    queries.create_availability(Availability(dress_id=dress_id, start_date=date(2030, 5, 1), end_date=date(2030, 5, 9)))

    assert queries.unavailable_dates(dress_id) == ["2030-03-30", "2030-03-31", "2030-04-01"]


def test_upsert_profile_keeps_defaults_on_later_writes(db) -> None:
    first = queries.upsert_profile("user-1", {"email": "ana@berkeley.edu"}, defaults={"full_name": "Ana", "phone": None})
    assert first["_id"] == "user-1"
    assert first["full_name"] == "Ana"

    queries.upsert_profile("user-1", {"phone": "555-0101"})
    again = queries.upsert_profile("user-1", {"email": "ana@berkeley.edu"}, defaults={"full_name": "Google Name"})

    assert again["full_name"] == "Ana"
    assert again["phone"] == "555-0101"
    assert queries.find_profile("nobody") is None
    with pytest.raises(NotFoundError):
        queries.get_profile("nobody")
