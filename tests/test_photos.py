"""Tests for the photo lifecycle."""

from datetime import timezone

import pytest
from PIL import Image
from sqlalchemy.exc import OperationalError
from sqlmodel import select

import photos
from conftest import make_image_bytes
from errors import ConflictError, InvalidImageError, NotFoundError, PersistenceError, ValidationError
from models import GalleryPhoto, Photo, Setting
from sizes import BUILTIN_SIZES


def link_rows(session, gallery_id):
    return session.exec(
        select(GalleryPhoto).where(GalleryPhoto.gallery_id == gallery_id).order_by(GalleryPhoto.sort_order)
    ).all()


class TestUpload:
    """Tests for photos.upload."""

    def test_writes_every_builtin_size(self, session, store, make_photo, large_jpeg_bytes):
        """A 3000x2000 upload yields six WebP files bounded by their boxes."""
        photo = make_photo("Sunset", data=large_jpeg_bytes)

        assert store.list_renditions(photo.image_id) == sorted(BUILTIN_SIZES)
        thumb = Image.open(store.path_for(photo.image_id, "thumbnail"))
        splash = Image.open(store.path_for(photo.image_id, "splash"))
        assert thumb.size == (200, 133)
        assert splash.size == (2000, 1333)

    def test_footprint_matches_files(self, session, store, make_photo):
        photo = make_photo()

        on_disk = sum(p.stat().st_size for p in (store.root / photo.image_id).iterdir())
        assert photo.asset_footprint == on_disk > 0

    def test_stores_metadata(self, session, make_photo, owner):
        photo = make_photo("Harbour", description="Evening", tags=[" sea ", "", "boats"])

        stored = session.get(Photo, photo.id)
        assert stored.title == "Harbour"
        assert stored.description == "Evening"
        assert stored.tags == ["sea", "boats"]
        assert stored.original_filename == "harbour.jpg"
        assert stored.user_id == owner

    def test_includes_custom_sizes(self, session, store, registry, make_photo):
        """Custom sizes in the registry are generated too."""
        from sizes import SizeSpec

        registry.custom["banner"] = SizeSpec("banner", 300, 100, 80, is_custom=True)

        photo = make_photo()

        assert store.has_rendition(photo.image_id, "banner")
        assert Image.open(store.path_for(photo.image_id, "banner")).size == (150, 100)

    def test_timestamps_are_timezone_aware(self):
        """New rows carry UTC-aware timestamps."""
        row = Setting(user_id="u", key="k", value="v")
        assert row.created_at.tzinfo is timezone.utc
        assert Photo(title="t", image_id="i", original_filename="f", user_id="u").updated_at.tzinfo is timezone.utc

    def test_png_upload_persists(self, session, store, registry, sample_png_bytes):
        photo = photos.upload(session, store, registry, sample_png_bytes, "a.png", "image/png", "Alpha")

        assert session.get(Photo, photo.id) is not None
        assert Image.open(store.path_for(photo.image_id, "small")).mode == "RGBA"

    def test_cmyk_jpeg_upload_persists(self, session, store, make_photo):
        photo = make_photo("Print", data=make_image_bytes((500, 300), color=(0, 128, 255, 0), mode="CMYK"))

        assert session.get(Photo, photo.id) is not None
        assert Image.open(store.path_for(photo.image_id, "small")).mode == "RGB"

    def test_links_to_gallery(self, session, make_photo, gallery):
        first = make_photo("One", gallery_id=gallery.id)
        second = make_photo("Two", gallery_id=gallery.id)

        links = link_rows(session, gallery.id)
        assert [(l.photo_id, l.sort_order) for l in links] == [(first.id, 1), (second.id, 2)]

    def test_unknown_gallery(self, session, store, make_photo):
        with pytest.raises(NotFoundError):
            make_photo(gallery_id="nope")

        assert not store.root.exists() or list(store.root.iterdir()) == []

    def test_rejects_content_type(self, session, store, registry, sample_jpeg_bytes):
        with pytest.raises(ValidationError) as exc:
            photos.upload(session, store, registry, sample_jpeg_bytes, "a.gif", "image/gif", "A")

        assert "Only JPEG, PNG, and WebP" in exc.value.message

    def test_rejects_large_file(self, session, store, registry, monkeypatch):
        monkeypatch.setattr(photos.config, "MAX_UPLOAD_BYTES", 10)

        with pytest.raises(ValidationError) as exc:
            photos.upload(session, store, registry, b"x" * 11, "a.jpg", "image/jpeg", "A")

        assert exc.value.message.startswith("File size too large")

    @pytest.mark.parametrize("title", ["", "   ", "x" * 101])
    def test_rejects_title(self, session, store, registry, sample_jpeg_bytes, title):
        with pytest.raises(ValidationError):
            photos.upload(session, store, registry, sample_jpeg_bytes, "a.jpg", "image/jpeg", title)

    def test_invalid_image_leaves_nothing(self, session, store, registry):
        with pytest.raises(InvalidImageError):
            photos.upload(session, store, registry, b"garbage", "a.jpg", "image/jpeg", "A")

        assert session.exec(select(Photo)).all() == []
        assert not store.root.exists() or list(store.root.iterdir()) == []

    def test_encode_failure_removes_partial_files(self, session, store, make_photo, mocker):
        """Renditions written before a failure are cleaned up."""
        from transcoder import ImageTranscoder

        real_encode = ImageTranscoder.encode
        calls = []

        def flaky(self, img, spec):
            calls.append(spec.name)
            if len(calls) == 3:
                raise OSError("disk full")
            return real_encode(self, img, spec)

        mocker.patch.object(ImageTranscoder, "encode", flaky)

        with pytest.raises(OSError):
            make_photo()

        assert session.exec(select(Photo)).all() == []
        assert list(store.root.iterdir()) == []

    def test_commit_failure_is_persistence_error(self, session, store, make_photo, mocker):
        mocker.patch.object(session, "commit", side_effect=OperationalError("INSERT", {}, Exception("locked")))

        with pytest.raises(PersistenceError):
            make_photo()

        assert list(store.root.iterdir()) == []


class TestUpdateAndDelete:
    """Tests for single photo update and delete."""

    def test_update(self, session, store, make_photo):
        photo = make_photo()
        before = set(store.list_renditions(photo.image_id))

        updated = photos.update(session, photo.id, "New title", "Desc", ["a", "b"])

        assert updated.title == "New title"
        assert updated.description == "Desc"
        assert updated.tags == ["a", "b"]
        assert set(store.list_renditions(photo.image_id)) == before

    def test_update_requires_title(self, session, make_photo):
        photo = make_photo()

        with pytest.raises(ValidationError):
            photos.update(session, photo.id, " ")

    def test_update_missing(self, session):
        with pytest.raises(NotFoundError):
            photos.update(session, "nope", "Title")

    def test_delete_removes_files_links_and_row(self, session, store, make_photo, gallery):
        photo = make_photo(gallery_id=gallery.id)
        photo_id, image_id = photo.id, photo.image_id

        photos.delete(session, store, photo_id)

        assert session.get(Photo, photo_id) is None
        assert link_rows(session, gallery.id) == []
        assert not (store.root / image_id).exists()

    def test_delete_without_directory(self, session, store, make_photo):
        """A photo whose files are already gone still deletes cleanly."""
        photo = make_photo()
        photo_id = photo.id
        store.delete_all_renditions(photo.image_id)

        photos.delete(session, store, photo_id)

        assert session.get(Photo, photo_id) is None

    def test_delete_missing(self, session, store):
        with pytest.raises(NotFoundError):
            photos.delete(session, store, "nope")


class TestQueries:
    """Tests for photo listing and counting."""

    def test_list_newest_first(self, session, make_photo):
        first = make_photo("First")
        second = make_photo("Second")

        assert [p.id for p in photos.list_photos(session)] == [second.id, first.id]

    def test_list_search(self, session, make_photo):
        make_photo("Mountain lake", tags=["water"])
        make_photo("City", description="night lights")
        make_photo("Forest", tags=["trees"])

        assert [p.title for p in photos.list_photos(session, search="lake")] == ["Mountain lake"]
        assert [p.title for p in photos.list_photos(session, search="night")] == ["City"]
        assert [p.title for p in photos.list_photos(session, search="trees")] == ["Forest"]

    def test_list_by_gallery(self, session, make_photo, gallery):
        inside = make_photo("Inside", gallery_id=gallery.id)
        make_photo("Outside")

        assert [p.id for p in photos.list_photos(session, gallery_id=gallery.id)] == [inside.id]

    def test_list_pagination(self, session, make_photo):
        for i in range(3):
            make_photo(f"P{i}")

        assert len(photos.list_photos(session, limit=2)) == 2
        assert len(photos.list_photos(session, limit=2, offset=2)) == 1

    def test_count(self, session, make_photo, owner):
        make_photo()
        make_photo()

        assert photos.photo_count(session) == 2
        assert photos.photo_count(session, owner) == 2
        assert photos.photo_count(session, "someone-else") == 0


class TestGalleryMembership:
    """Tests for adding, removing and ordering gallery photos."""

    def test_add_appends(self, session, make_photo, gallery):
        a, b = make_photo("A"), make_photo("B")

        photos.add_to_gallery(session, a.id, gallery.id)
        link = photos.add_to_gallery(session, b.id, gallery.id)

        assert link.sort_order == 2

    def test_add_twice_conflicts(self, session, make_photo, gallery):
        photo = make_photo()
        photos.add_to_gallery(session, photo.id, gallery.id)

        with pytest.raises(ConflictError):
            photos.add_to_gallery(session, photo.id, gallery.id)

    def test_add_unknown(self, session, make_photo, gallery):
        photo = make_photo()

        with pytest.raises(NotFoundError):
            photos.add_to_gallery(session, "nope", gallery.id)
        with pytest.raises(NotFoundError):
            photos.add_to_gallery(session, photo.id, "nope")

    def test_remove(self, session, make_photo, gallery):
        photo = make_photo(gallery_id=gallery.id)

        photos.remove_from_gallery(session, photo.id, gallery.id)
        photos.remove_from_gallery(session, photo.id, gallery.id)

        assert link_rows(session, gallery.id) == []

    def test_reorder(self, session, make_photo, gallery):
        a = make_photo("A", gallery_id=gallery.id)
        b = make_photo("B", gallery_id=gallery.id)

        updated = photos.reorder_in_gallery(
            session, gallery.id, [(a.id, 5), (b.id, 1), ("nope", 3)]
        )

        assert updated == 2
        assert [l.photo_id for l in link_rows(session, gallery.id)] == [b.id, a.id]


class TestBulkOperations:
    """Tests for bulk delete and gallery operations."""

    def test_bulk_delete(self, session, store, make_photo):
        a, b = make_photo("A"), make_photo("B")
        ids = [a.id, b.id]
        image_ids = [a.image_id, b.image_id]

        result = photos.bulk_delete(session, store, ids)

        assert result.deleted == ids
        assert result.failed == []
        assert result.total == 2
        assert photos.photo_count(session) == 0
        assert all(not (store.root / i).exists() for i in image_ids)

    def test_bulk_delete_repeated_ids_count_once(self, session, store, make_photo):
        """deleted + failed always equals total."""
        a = make_photo("A")
        photo_id = a.id

        result = photos.bulk_delete(session, store, [photo_id, photo_id])

        assert result.deleted == [photo_id]
        assert result.total == 1
        assert len(result.deleted) + len(result.failed) == result.total

    def test_bulk_delete_missing_directory(self, session, store, make_photo):
        """A photo with no files on disk is still deleted."""
        a, b = make_photo("A"), make_photo("B")
        store.delete_all_renditions(a.image_id)

        result = photos.bulk_delete(session, store, [a.id, b.id])

        assert len(result.deleted) == 2
        assert result.failed == []

    def test_bulk_delete_unknown_id_deletes_nothing(self, session, store, make_photo):
        photo = make_photo()

        with pytest.raises(NotFoundError) as exc:
            photos.bulk_delete(session, store, [photo.id, "nope"])

        assert exc.value.missing_ids == ["nope"]
        assert photos.photo_count(session) == 1
        assert store.list_renditions(photo.image_id)

    def test_bulk_delete_empty(self, session, store):
        with pytest.raises(ValidationError):
            photos.bulk_delete(session, store, [])

    def test_bulk_delete_records_failures(self, session, store, make_photo, mocker):
        a, b = make_photo("A"), make_photo("B")
        real_remove = photos._remove

        def remove(session_, store_, photo):
            if photo.id == a.id:
                raise PersistenceError("Failed to delete photo")
            return real_remove(session_, store_, photo)

        mocker.patch("photos._remove", side_effect=remove)

        result = photos.bulk_delete(session, store, [a.id, b.id])

        assert result.deleted == [b.id]
        assert [f.id for f in result.failed] == [a.id]
        assert result.failed[0].error == "Failed to delete photo"

    def test_bulk_add_skips_existing(self, session, make_photo, gallery):
        a = make_photo("A", gallery_id=gallery.id)
        b, c = make_photo("B"), make_photo("C")

        result = photos.bulk_add_to_gallery(session, [a.id, b.id, c.id], gallery.id)

        assert (result.added, result.skipped, result.total) == (2, 1, 3)
        links = link_rows(session, gallery.id)
        assert [(l.photo_id, l.sort_order) for l in links] == [(a.id, 1), (b.id, 2), (c.id, 3)]

    def test_bulk_add_repeated_ids_count_once(self, session, make_photo, gallery):
        a = make_photo("A")

        result = photos.bulk_add_to_gallery(session, [a.id, a.id], gallery.id)

        assert (result.added, result.skipped, result.total) == (1, 0, 1)
        assert len(link_rows(session, gallery.id)) == 1

    def test_bulk_add_all_present(self, session, make_photo, gallery):
        a = make_photo("A", gallery_id=gallery.id)

        result = photos.bulk_add_to_gallery(session, [a.id], gallery.id)

        assert result.added == 0
        assert result.to_dict()["message"] == "All selected photos are already in this gallery"

    def test_bulk_add_unknown_gallery(self, session, make_photo):
        a = make_photo("A")

        with pytest.raises(NotFoundError):
            photos.bulk_add_to_gallery(session, [a.id], "nope")

    def test_bulk_remove(self, session, make_photo, gallery):
        a = make_photo("A", gallery_id=gallery.id)
        b = make_photo("B", gallery_id=gallery.id)

        removed = photos.bulk_remove_from_gallery(session, [a.id, "nope"], gallery.id)

        assert removed == 1
        assert [l.photo_id for l in link_rows(session, gallery.id)] == [b.id]


class TestPhotoLock:
    """Tests for the per-photo lock registry."""

    def test_lock_released(self):
        with photos.photo_lock("abc"):
            assert "abc" in photos._locks

        assert "abc" not in photos._locks
