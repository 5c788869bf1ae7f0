"""Tests for the row-scoped library data access."""

import pytest

from backend.src.models.library import MediaFilters, MediaStatus, MediaType, Origin
from backend.src.services.library_service import LibraryService


def _add(library: LibraryService, user_id: str, title: str, **fields) -> str:
    return library.create_media(user_id, {"title": title, "type": fields.pop("type", "book"), **fields})


class TestMediaItems:
    """CRUD on media items."""

    def test_create_and_get(self, library: LibraryService):
        item_id = _add(library, "alice", "Dune", author="Frank Herbert", tags=["scifi"], rating=9)

        item = library.get_media("alice", item_id)
        assert item is not None
        assert item.title == "Dune"
        assert item.type == MediaType.BOOK
        assert item.tags == ["scifi"]
        assert item.rating == 9
        assert item.completed_at is None

    def test_create_requires_title_and_type(self, library: LibraryService):
        with pytest.raises(ValueError):
            library.create_media("alice", {"title": "No type"})

    def test_create_completed_sets_completed_at(self, library: LibraryService):
        item_id = _add(library, "alice", "Finished", user_status=MediaStatus.COMPLETED)
        assert library.get_media("alice", item_id).completed_at is not None

    def test_update_is_partial(self, library: LibraryService):
        item_id = _add(library, "alice", "Dune", author="Frank Herbert")

        assert library.update_media("alice", item_id, {"rating": 7.5})
        item = library.get_media("alice", item_id)
        assert item.rating == 7.5
        assert item.author == "Frank Herbert"

    def test_update_status_tracks_completion(self, library: LibraryService):
        item_id = _add(library, "alice", "Dune")

        library.update_media("alice", item_id, {"user_status": "completed"})
        completed_at = library.get_media("alice", item_id).completed_at
        assert completed_at is not None

        # Already completed: timestamp kept
        library.update_media("alice", item_id, {"user_status": "completed"})
        assert library.get_media("alice", item_id).completed_at == completed_at

        library.update_media("alice", item_id, {"user_status": "ongoing"})
        assert library.get_media("alice", item_id).completed_at is None

    def test_update_other_users_item_is_noop(self, library: LibraryService):
        item_id = _add(library, "alice", "Dune")

        assert library.update_media("bob", item_id, {"title": "Hijacked"}) is False
        assert library.get_media("alice", item_id).title == "Dune"

    def test_delete_mixed_ownership_only_removes_own(self, library: LibraryService):
        mine = _add(library, "alice", "Mine")
        theirs = _add(library, "bob", "Theirs")

        assert library.delete_media("alice", [mine, theirs, "missing"]) == 1
        assert library.get_media("alice", mine) is None
        assert library.get_media("bob", theirs) is not None

    def test_delete_empty_list(self, library: LibraryService):
        assert library.delete_media("alice", []) == 0

    def test_repeated_delete_is_a_noop(self, library: LibraryService):
        """Deleting an already-deleted id affects nothing and does not raise."""
        item_id = _add(library, "alice", "Dune")

        assert library.delete_media("alice", [item_id]) == 1
        assert library.delete_media("alice", [item_id]) == 0


class TestSearchMedia:
    """Filtering and scoping of search_media."""

    @pytest.fixture
    def seeded(self, library: LibraryService) -> LibraryService:
        _add(library, "alice", "Dune", tags=["scifi", "classic"], rating=9, origin=Origin.US)
        _add(library, "alice", "Akira", type="comic", tags=["scifi"], rating=8, origin=Origin.JP)
        _add(library, "alice", "100% Orange", type="comic", tags=["slice-of-life"], rating=6)
        _add(library, "bob", "Dune Messiah", tags=["scifi"])
        return library

    def test_scoped_to_owner(self, seeded: LibraryService):
        items, total = seeded.search_media("alice", MediaFilters(query="dune"))
        assert total == 1
        assert [i.title for i in items] == ["Dune"]

    def test_other_user_sees_nothing_of_alice(self, seeded: LibraryService):
        items, total = seeded.search_media("carol", MediaFilters())
        assert items == []
        assert total == 0

    def test_type_filter(self, seeded: LibraryService):
        items, total = seeded.search_media("alice", MediaFilters(type=[MediaType.COMIC]))
        assert total == 2
        assert {i.title for i in items} == {"Akira", "100% Orange"}

    def test_tag_overlap(self, seeded: LibraryService):
        _, total = seeded.search_media("alice", MediaFilters(tags=["classic", "slice-of-life"]))
        assert total == 2

    def test_rating_range(self, seeded: LibraryService):
        items, _ = seeded.search_media("alice", MediaFilters(rating_min=7, rating_max=8.5))
        assert [i.title for i in items] == ["Akira"]

    def test_query_wildcards_are_literal(self, seeded: LibraryService):
        items, _ = seeded.search_media("alice", MediaFilters(query="100%"))
        assert [i.title for i in items] == ["100% Orange"]

        _, total = seeded.search_media("alice", MediaFilters(query="%"))
        assert total == 1

    def test_limit_caps_items_not_total(self, seeded: LibraryService):
        items, total = seeded.search_media("alice", MediaFilters(limit=1))
        assert len(items) == 1
        assert total == 3

    def test_newest_update_first(self, seeded: LibraryService):
        items, _ = seeded.search_media("alice", MediaFilters())
        dune = next(i for i in items if i.title == "Dune")
        seeded.update_media("alice", dune.id, {"notes": "reread"})

        items, _ = seeded.search_media("alice", MediaFilters())
        assert items[0].title == "Dune"


class TestAggregationColumns:
    def test_fetch_columns(self, library: LibraryService):
        _add(library, "alice", "Dune", tags=["scifi"])
        rows = library.fetch_media_columns("alice", ["type", "tags"])
        assert rows == [{"type": "book", "tags": ["scifi"]}]

    def test_rejects_unknown_columns(self, library: LibraryService):
        with pytest.raises(ValueError):
            library.fetch_media_columns("alice", ["title; DROP TABLE media_items"])


class TestCollections:
    """Collections and membership."""

    def test_create_and_list_with_counts(self, library: LibraryService):
        collection_id = library.create_collection("alice", "Favourites", "#3B82F6")
        item_id = _add(library, "alice", "Dune")
        library.add_to_collection("alice", collection_id, [item_id])

        [collection] = library.list_collections("alice")
        assert collection.name == "Favourites"
        assert collection.color == "#3B82F6"
        assert collection.item_count == 1

    def test_list_filters_by_name(self, library: LibraryService):
        library.create_collection("alice", "Favourites")
        library.create_collection("alice", "To read")

        assert [c.name for c in library.list_collections("alice", query="read")] == ["To read"]
        assert library.list_collections("bob") == []

    def test_add_is_idempotent(self, library: LibraryService):
        collection_id = library.create_collection("alice", "Favourites")
        item_id = _add(library, "alice", "Dune")

        assert library.add_to_collection("alice", collection_id, [item_id]) == 1
        assert library.add_to_collection("alice", collection_id, [item_id, item_id]) == 1
        assert library.list_collections("alice")[0].item_count == 1

    def test_add_ignores_foreign_items_and_collections(self, library: LibraryService):
        mine = library.create_collection("alice", "Mine")
        theirs = library.create_collection("bob", "Theirs")
        my_item = _add(library, "alice", "Dune")
        their_item = _add(library, "bob", "Akira")

        assert library.add_to_collection("alice", mine, [my_item, their_item]) == 1
        assert library.add_to_collection("alice", theirs, [my_item]) == 0

    def test_remove_from_collection(self, library: LibraryService):
        collection_id = library.create_collection("alice", "Favourites")
        item_id = _add(library, "alice", "Dune")
        library.add_to_collection("alice", collection_id, [item_id])

        assert library.remove_from_collection("bob", collection_id, [item_id]) == 0
        assert library.remove_from_collection("alice", collection_id, [item_id]) == 1
        assert library.list_collections("alice")[0].item_count == 0

    def test_delete_collection_cascades_membership(self, library: LibraryService):
        collection_id = library.create_collection("alice", "Favourites")
        item_id = _add(library, "alice", "Dune")
        library.add_to_collection("alice", collection_id, [item_id])

        assert library.delete_collections("bob", [collection_id]) == 0
        assert library.delete_collections("alice", [collection_id]) == 1
        assert library.list_collections("alice") == []
        # The item itself survives
        assert library.get_media("alice", item_id) is not None

    def test_deleting_item_drops_membership(self, library: LibraryService):
        collection_id = library.create_collection("alice", "Favourites")
        item_id = _add(library, "alice", "Dune")
        library.add_to_collection("alice", collection_id, [item_id])

        library.delete_media("alice", [item_id])
        assert library.list_collections("alice")[0].item_count == 0
