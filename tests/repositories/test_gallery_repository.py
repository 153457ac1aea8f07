"""Tests for GalleryRepository (entity persistence, lookups, listing)."""

import pytest

from clientgallery.core.errors import GalleryNotFoundError, IntegrityError, InvalidSlugError, InvalidStatusError
from clientgallery.domain.gallery import Gallery, GalleryStatus
from clientgallery.repositories import PageSlice


@pytest.fixture
def galleries(repos):
    return repos.galleries


def _save(galleries, client_id, name, sort_order=0, **kwargs):
    gallery = Gallery.create(name, name, client_id, **kwargs)
    gallery.sort_order = sort_order
    return galleries.save(gallery)


# =============================================================================
# Save / delete
# =============================================================================


class TestSave:
    def test_insert_assigns_id(self, galleries, client_id):
        gallery = _save(galleries, client_id, "Summer Shoot", description="Beach", settings={"watermark": True})
        assert gallery.id > 0
        stored = galleries.find_gallery_by_id(gallery.id)
        assert stored.name == "Summer Shoot"
        assert stored.slug.value == "summer-shoot"
        assert stored.status is GalleryStatus.DRAFT
        assert stored.settings == {"watermark": True}
        assert stored.created_at is not None

    def test_update_existing(self, galleries, client_id):
        gallery = _save(galleries, client_id, "Summer")
        gallery.publish()
        gallery.description = "Now public"
        saved = galleries.save(gallery)
        assert saved.status is GalleryStatus.PUBLISHED
        assert galleries.find_gallery_by_id(gallery.id).description == "Now public"

    def test_update_missing_raises(self, galleries, client_id):
        gallery = Gallery.create("Ghost", "ghost", client_id)
        gallery.id = 999
        with pytest.raises(GalleryNotFoundError):
            galleries.save(gallery)

    def test_duplicate_slug_rejected(self, galleries, client_id):
        _save(galleries, client_id, "Summer")
        with pytest.raises(IntegrityError):
            _save(galleries, client_id, "Summer")

    def test_unknown_client_rejected(self, galleries, installed):
        with pytest.raises(IntegrityError):
            _save(galleries, 404, "Orphan")

    def test_raw_create_normalizes_slug(self, galleries, client_id):
        gallery_id = galleries.create({"name": "Mine", "slug": "My_Slug", "client_id": client_id})
        stored = galleries.find_gallery_by_id(gallery_id)
        assert stored.slug.value == "my-slug"
        assert galleries.find_by_slug(stored.slug).id == gallery_id

    @pytest.mark.parametrize("slug", ["admin", "", "!!"])
    def test_raw_create_rejects_invalid_slug(self, galleries, client_id, slug):
        with pytest.raises(InvalidSlugError):
            galleries.create({"name": "Admin", "slug": slug, "client_id": client_id})
        assert galleries.count() == 0

    def test_raw_update_normalizes_slug(self, galleries, gallery_id):
        assert galleries.update(gallery_id, {"slug": "New Home", "status": "PUBLISHED"})
        stored = galleries.find_gallery_by_id(gallery_id)
        assert (stored.slug.value, stored.status) == ("new-home", GalleryStatus.PUBLISHED)
        with pytest.raises(InvalidSlugError):
            galleries.update(gallery_id, {"slug": "feed"})

    def test_stored_slug_read_back_verbatim(self, repos, galleries, client_id, conn):
        conn.execute(
            f"INSERT INTO {galleries.table_name} (name, slug, client_id, status) VALUES ('Legacy', 'admin', ?, 'draft')",
            (client_id,),
        )
        conn.commit()
        [legacy] = galleries.find_by_client_id(client_id)
        assert legacy.slug.value == "admin"
        assert galleries.find_page(client_id=client_id).total == 1

    def test_update_does_not_touch_image_count(self, repos, galleries, gallery_id, image_id):
        gallery = galleries.find_gallery_by_id(gallery_id)
        gallery.image_count = 0
        gallery.name = "Renamed"
        galleries.save(gallery)
        assert galleries.find_gallery_by_id(gallery_id).image_count == 1

    def test_delete_cascades_to_images(self, repos, galleries, gallery_id, image_id):
        assert galleries.delete_by_id(gallery_id)
        assert not galleries.exists_by_id(gallery_id)
        assert repos.images.find_by_id(image_id) is None
        assert galleries.delete_by_id(gallery_id) is False


# =============================================================================
# Lookups
# =============================================================================


class TestLookups:
    def test_find_by_slug(self, galleries, gallery_id):
        assert galleries.find_by_slug("wedding").id == gallery_id
        assert galleries.find_by_slug("nope") is None

    def test_exists_by_slug_with_exclusion(self, galleries, gallery_id):
        assert galleries.exists_by_slug("wedding")
        assert not galleries.exists_by_slug("wedding", exclude_id=gallery_id)

    def test_unique_slug(self, galleries, gallery_id):
        assert galleries.unique_slug("Wedding").value == "wedding-1"
        assert galleries.unique_slug("Birthday").value == "birthday"

    def test_find_by_status(self, galleries, client_id):
        a = _save(galleries, client_id, "Alpha")
        b = _save(galleries, client_id, "Beta")
        b.publish()
        galleries.save(b)
        assert [g.id for g in galleries.find_by_status("draft")] == [a.id]
        assert [g.id for g in galleries.find_by_status(GalleryStatus.PUBLISHED)] == [b.id]
        with pytest.raises(InvalidStatusError):
            galleries.find_by_status("deleted")

    def test_find_by_client_orders_by_sort_order(self, galleries, client_id):
        _save(galleries, client_id, "Zulu", sort_order=1)
        _save(galleries, client_id, "Alpha", sort_order=2)
        _save(galleries, client_id, "Bravo", sort_order=1)
        assert [g.name for g in galleries.find_by_client_id(client_id)] == ["Bravo", "Zulu", "Alpha"]

    def test_counts(self, galleries, client_id):
        _save(galleries, client_id, "Alpha")
        b = _save(galleries, client_id, "Beta")
        b.archive()
        galleries.save(b)
        assert galleries.count_by_status("draft") == 1
        assert galleries.count_by_criteria(client_id=client_id) == 2
        assert galleries.count_by_criteria("archived", client_id) == 1
        assert galleries.count_by_criteria(client_id=404) == 0


# =============================================================================
# Ordering / counters
# =============================================================================


class TestOrdering:
    def test_next_sort_order(self, galleries, client_id):
        assert galleries.next_sort_order(client_id) == 1
        _save(galleries, client_id, "Alpha", sort_order=4)
        assert galleries.next_sort_order(client_id) == 5

    def test_update_sort_orders(self, galleries, client_id):
        a = _save(galleries, client_id, "Alpha")
        b = _save(galleries, client_id, "Beta")
        assert galleries.update_sort_orders({a.id: 2, b.id: 1})
        assert [g.name for g in galleries.find_by_client_id(client_id)] == ["Beta", "Alpha"]

    def test_refresh_image_count(self, galleries, gallery_id, image_id, conn):
        conn.execute("UPDATE wp_mlcg_galleries SET image_count = 7")
        conn.commit()
        assert galleries.refresh_image_count(gallery_id) == 1
        assert galleries.find_gallery_by_id(gallery_id).image_count == 1


# =============================================================================
# Listing
# =============================================================================


class TestListing:
    @pytest.fixture
    def five(self, galleries, client_id):
        names = ["Alpha", "Beta", "Gamma", "Delta", "Epsilon"]
        return [_save(galleries, client_id, n, description=f"{n} shoot") for n in names]

    def test_pagination_newest_first(self, galleries, five):
        page = galleries.find_with_pagination(limit=2, offset=0)
        assert [g.name for g in page] == ["Epsilon", "Delta"]

    def test_find_by_criteria_search(self, galleries, five):
        assert [g.name for g in galleries.find_by_criteria(search="amm")] == ["Gamma"]
        assert [g.name for g in galleries.find_by_criteria(search="delta SHOOT")] == ["Delta"]

    def test_find_page(self, galleries, five, client_id):
        page = galleries.find_page(client_id=client_id, page=PageSlice.for_page(2, per_page=2))
        assert page.total == 5
        assert page.pages == 3
        assert page.page == 2
        assert [g.name for g in page.items] == ["Gamma", "Beta"]
        assert page.has_more

    def test_statistics(self, galleries, five, client_id, image_data, repos):
        five[0].publish()
        galleries.save(five[0])
        repos.images.create(image_data(five[1].id))
        stats = galleries.get_statistics(client_id=client_id)
        assert stats["total_galleries"] == 5
        assert stats["by_status"] == {"draft": 4, "published": 1, "archived": 0}
        assert stats["recent"] == 5
        assert stats["images_in_galleries"] == 1
