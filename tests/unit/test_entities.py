"""Tests for journal and cache entities."""

import httpx
import pytest
from pydantic import ValidationError

from silverquill.domain.entities import (
    Book,
    BookChanges,
    BookDraft,
    BookStatus,
    CachedResponse,
    CacheRequest,
    CoverUpload,
    Identity,
    Quote,
    WishlistItem,
)
from silverquill.domain.entities.cache import is_cacheable, origin_of

APP = "https://journal.example.com"


class TestBook:
    """Test cases for the Book entity."""

    def test_book_from_store_row(self):
        """Store column names populate the entity fields."""
        book = Book.model_validate({
            "id": "b1",
            "user_id": "u1",
            "title": "Dune",
            "author": "Frank Herbert",
            "status": "Want to Read",
            "rating_overall": 4,
            "review_text": "Spice.",
            "current_page": 10,
            "total_pages": 400,
            "created_at": "2026-01-01T00:00:00+00:00",
        })

        assert book.owner_id == "u1"
        assert book.status == BookStatus.WANT_TO_READ
        assert book.rating == 4
        assert book.review == "Spice."

    def test_current_page_may_not_exceed_total(self):
        with pytest.raises(ValidationError):
            Book(id="b1", owner_id="u1", title="Dune", current_page=401, total_pages=400)

    def test_book_without_page_count_accepts_any_progress(self):
        book = Book(id="b1", owner_id="u1", title="Dune", current_page=50, total_pages=0)
        assert book.current_page == 50

    def test_rating_range(self):
        with pytest.raises(ValidationError):
            Book(id="b1", owner_id="u1", title="Dune", rating=6)

    def test_title_required(self):
        with pytest.raises(ValidationError):
            Book(id="b1", owner_id="u1", title="")


class TestBookDraftAndChanges:
    """Test cases for insert and update payloads."""

    def test_draft_row_starts_at_page_zero(self):
        draft = BookDraft(title="Dune", author="Frank Herbert", total_pages=400, rating=5, review="Great")
        row = draft.to_row("u1", cover_url="https://cdn/u1/1.png")

        assert row["user_id"] == "u1"
        assert row["current_page"] == 0
        assert row["cover_url"] == "https://cdn/u1/1.png"
        assert row["rating_overall"] == 5
        assert row["review_text"] == "Great"
        assert row["status"] == "Reading"

    def test_changes_only_carry_set_columns(self):
        changes = BookChanges(status=BookStatus.READ, rating=3)
        assert changes.to_row() == {"status": "Read", "rating_overall": 3}

    def test_empty_changes(self):
        assert BookChanges().to_row() == {}


class TestOtherEntities:
    """Test cases for quotes, wishlist items, identities and covers."""

    def test_quote_from_row(self):
        quote = Quote.model_validate({"id": "q1", "book_id": "b1", "user_id": "u1", "quote_text": "Fear is the mind-killer."})
        assert quote.text == "Fear is the mind-killer."

    def test_wishlist_from_row(self):
        item = WishlistItem.model_validate({"id": "w1", "user_id": "u1", "book_title": "Emma", "notes": "Austen"})
        assert item.title == "Emma"
        assert item.author == ""

    def test_identity_hides_token_in_repr(self):
        identity = Identity(user_id="u1", access_token="secret-token")
        assert "secret-token" not in repr(identity)

    def test_identity_requires_user(self):
        with pytest.raises(ValidationError):
            Identity(user_id="", access_token="t")

    @pytest.mark.parametrize(
        "filename,extension",
        [("cover.PNG", "png"), ("photo.final.jpeg", "jpeg"), ("cover", "bin")],
    )
    def test_cover_extension(self, filename, extension):
        assert CoverUpload(filename=filename, content=b"x").extension == extension


class TestCacheEntities:
    """Test cases for the cache storage policy."""

    def test_origin_of(self):
        assert origin_of("HTTPS://Journal.example.com:8443/app.js?v=1") == "https://journal.example.com:8443"

    def test_request_key(self):
        assert CacheRequest(method="get", url=f"{APP}/app.js").key == f"GET {APP}/app.js"

    def test_same_origin_200_is_cacheable(self):
        request = CacheRequest(url=f"{APP}/app.js")
        response = CachedResponse(status_code=200, url=f"{APP}/app.js")
        assert is_cacheable(request, response, APP)

    @pytest.mark.parametrize("status", [201, 204, 304, 404, 500])
    def test_non_200_is_not_cacheable(self, status):
        request = CacheRequest(url=f"{APP}/app.js")
        response = CachedResponse(status_code=status, url=f"{APP}/app.js")
        assert not is_cacheable(request, response, APP)

    def test_cross_origin_is_not_cacheable(self):
        request = CacheRequest(url="https://fonts.example.net/font.woff2")
        response = CachedResponse(status_code=200, url="https://fonts.example.net/font.woff2")
        assert not is_cacheable(request, response, APP)

    def test_redirected_is_not_cacheable(self):
        request = CacheRequest(url=f"{APP}/")
        response = CachedResponse(status_code=200, url=f"{APP}/index.html", redirected=True)
        assert not is_cacheable(request, response, APP)

    def test_non_get_is_not_cacheable(self):
        request = CacheRequest(method="POST", url=f"{APP}/api")
        response = CachedResponse(status_code=200, url=f"{APP}/api")
        assert not is_cacheable(request, response, APP)

    def test_rebuilt_response_drops_framing_headers(self):
        cached = CachedResponse(
            status_code=200,
            headers={"content-type": "text/javascript", "content-encoding": "gzip", "content-length": "999"},
            body=b"console.log(1)",
        )
        request = httpx.Request("GET", f"{APP}/app.js")

        response = cached.to_httpx(request)

        assert response.status_code == 200
        assert response.content == b"console.log(1)"
        assert response.headers["content-type"] == "text/javascript"
        assert "content-encoding" not in response.headers
        assert response.request is request
