from __future__ import annotations

from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from dishmatch.inventory.geo import distance_km, km_to_radians
from dishmatch.inventory.models import GeoWithin, Posting, PostingQuery, PreferenceSignal, RequesterProfile


def _signal(requester: str, title: str, now) -> PreferenceSignal:
    return PreferenceSignal(
        requester_id=requester,
        subject_title=title,
        liked=True,
        description=title,
        timestamp=now,
    )


def test_posting_rejects_overfilled(make_posting):
    with pytest.raises(ValidationError):
        make_posting("Ramen", slots=2, filled=3)


def test_posting_availability(make_posting, now):
    assert make_posting("Ramen").is_available(now)
    assert not make_posting("Udon", slots=1, filled=1).is_available(now)
    assert not make_posting("Soba", start_time=now - timedelta(minutes=1)).is_available(now)


def test_first_signal_flags_profile(store, now):
    store.upsert_profile(RequesterProfile(requester_id="alice", date_of_birth=date(1990, 1, 1)))

    assert store.record_preference_signal(_signal("alice", "Ramen", now)) is True
    assert store.record_preference_signal(_signal("alice", "Udon", now)) is False
    assert store.get_requester_profile("alice").preferences_set


def test_signals_filter_by_requester_and_accounts(store, now):
    for requester, title in [("alice", "Ramen"), ("bob", "Pizza"), ("carol", "Tacos")]:
        store.record_preference_signal(_signal(requester, title, now))

    assert [s.subject_title for s in store.find_preference_signals("bob")] == ["Pizza"]
    picked = store.find_preference_signals(account_ids={"alice", "carol"})
    assert [s.subject_title for s in picked] == ["Ramen", "Tacos"]
    assert len(store.find_preference_signals()) == 3


def test_active_accounts_window(store, now):
    store.record_login("alice", now - timedelta(days=1))
    store.record_login("bob", now - timedelta(days=10))

    assert store.active_account_ids(now - timedelta(days=7)) == {"alice"}


def test_filled_counter_respects_capacity(store, make_posting):
    posting = make_posting("Ramen", slots=1)
    store.add_posting(posting)

    assert store.increment_filled(posting.id) is True
    assert store.increment_filled(posting.id) is False
    assert store.get_posting(posting.id).last_accepted_at is not None

    assert store.decrement_filled(posting.id) is True
    assert store.decrement_filled(posting.id) is False
    assert store.increment_filled("missing") is False


def test_mutations_are_visible_to_queries(store, make_posting, now):
    posting = make_posting("Ramen", slots=1)
    store.add_posting(posting)
    query = PostingQuery(start_from=now)

    assert [p.id for p in store.find_available_postings(query)] == [posting.id]
    store.increment_filled(posting.id)
    assert store.find_available_postings(query) == []


def test_postings_without_coordinates_never_match_geo(store, make_posting, places, now):
    berlin = places.resolve_coordinates("Berlin")
    located = make_posting("Ramen", coordinates=berlin)
    unlocated = make_posting("Udon")
    store.add_postings([located, unlocated])
    near = GeoWithin(lat=berlin[0], lon=berlin[1], max_distance=km_to_radians(5000))

    result = store.find_available_postings(PostingQuery(start_from=now, near=near))

    assert [p.id for p in result] == [located.id]


def test_offset_and_limit_slice_results(store, make_posting, now):
    postings = [make_posting(f"Dish {i}") for i in range(5)]
    store.add_postings(postings)

    page = store.find_available_postings(PostingQuery(start_from=now), offset=1, limit=2)

    assert [p.id for p in page] == [postings[1].id, postings[2].id]


def test_clear_empties_everything(store, make_posting, now):
    store.add_posting(make_posting("Ramen"))
    store.record_login("alice", now)
    store.record_preference_signal(_signal("alice", "Ramen", now))

    store.clear()

    assert store.find_available_postings(PostingQuery(start_from=now)) == []
    assert store.find_preference_signals() == []
    assert store.get_requester_profile("alice") is None


def test_distance_between_known_cities(places):
    km = distance_km(places.resolve_coordinates("Berlin"), places.resolve_coordinates("Potsdam"))
    assert 25 < km < 30


def test_place_lookup_is_case_insensitive(places):
    assert places.resolve_coordinates("  bErLiN ") == places.resolve_coordinates("Berlin")
    assert places.resolve_coordinates("Atlantis") is None


def test_posting_is_immutable_copy_on_update(store, make_posting):
    posting = make_posting("Ramen", slots=2)
    store.add_posting(posting)
    store.increment_filled(posting.id)

    assert posting.filled == 0
    assert isinstance(store.get_posting(posting.id), Posting)
    assert store.get_posting(posting.id).filled == 1


def test_profile_home_is_coordinates_only():
    profile = RequesterProfile(requester_id="alice", home_coordinates=(52.52, 13.405))

    assert profile.home_coordinates == (52.52, 13.405)
    assert "home_city" not in RequesterProfile.model_fields
