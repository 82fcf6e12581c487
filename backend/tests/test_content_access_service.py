"""Access orchestration tests"""
from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest

from contentgate.core.exceptions import (
    BadRequest, ConfigurationError, Forbidden, InternalError, NotFound, RateLimited, Unauthorized
)
from contentgate.models.content_file import ContentFile
from contentgate.services.content_access_service import ContentFamily, format_expiry, generate_content_access
from contentgate.services.rate_limiter import InMemoryRateLimitStore, RateLimiter
from contentgate.utils import content_tokens
from contentgate.utils.content_tokens import ContentSigner, DocumentToken, VideoToken

NOW = 1_700_000_000
BASE_URL = "https://shop.example.com"
DRIVE_ID = "1BxiMVs0XRA5nFMdKvBdBZjgmUUqptlbs74OgvE2upms"


def mint(user_id, product_file_id, db, signer, rate_limiter=None):
    return generate_content_access(
        user_id, product_file_id, db,
        signer=signer, rate_limiter=rate_limiter, base_url=BASE_URL, now=NOW,
    )


def add_file(db_session, product, **fields):
    content_file = ContentFile(product_id=product.id, name=fields.pop("name", "Asset"), **fields)
    db_session.add(content_file)
    db_session.commit()
    db_session.refresh(content_file)
    return content_file


@pytest.mark.critical
class TestMintDocument:
    """Document links"""

    def test_document_access(self, db_session, signer, test_user, document_file, active_license):
        result = mint(test_user.id, document_file.id, db_session, signer)

        assert result["success"] is True
        assert result["contentType"] == "document"
        assert result["fileName"] == "Workbook.pdf"
        assert result["expiresAt"] == "2023-11-14T23:13:20.000Z"

        parsed = urlparse(result["accessUrl"])
        assert parsed.path == "/api/content/download/drive"
        query = parse_qs(parsed.query)
        assert query["fileId"] == [DRIVE_ID]
        assert query["expires"] == [str(NOW + 3600)]
        token = DocumentToken(DRIVE_ID, "Workbook.pdf", NOW + 3600)
        assert signer.verify(query["signature"][0], token, now=NOW).valid

    def test_string_file_id_is_accepted(self, db_session, signer, test_user, document_file, active_license):
        assert mint(test_user.id, str(document_file.id), db_session, signer)["success"]

    @pytest.mark.parametrize("content_type", ["pdf", "docx", "file"])
    def test_document_family_types(self, db_session, signer, test_user, test_product, active_license, content_type):
        content_file = add_file(db_session, test_product, content_type=content_type, google_drive_link=DRIVE_ID)
        assert mint(test_user.id, content_file.id, db_session, signer)["contentType"] == "document"

    def test_missing_drive_link_is_soft_failure(self, db_session, signer, test_user, test_product, active_license):
        content_file = add_file(db_session, test_product, content_type="pdf")
        assert mint(test_user.id, content_file.id, db_session, signer) == {
            "success": False, "error": "Document not configured"
        }

    def test_unparseable_drive_link_is_soft_failure(self, db_session, signer, test_user, test_product, active_license):
        content_file = add_file(db_session, test_product, content_type="pdf", google_drive_link="https://example.com/x")
        assert mint(test_user.id, content_file.id, db_session, signer) == {
            "success": False, "error": "Invalid Google Drive link"
        }


@pytest.mark.critical
class TestMintVideo:
    """Video links"""

    def test_video_access(self, db_session, signer, test_user, video_file, active_license):
        result = mint(test_user.id, video_file.id, db_session, signer)

        assert result["success"] is True
        assert result["contentType"] == "video"
        assert result["videoId"] == "dQw4w9WgXcQ"
        assert result["title"] == "Lesson 1"
        assert result["expiresAt"] == "2023-11-15T00:13:20.000Z"
        assert result["embedUrl"] == (
            "https://www.youtube.com/embed/dQw4w9WgXcQ?autoplay=0&controls=1&showinfo=0&modestbranding=1&rel=0&iv_load_policy=3"
        )
        query = parse_qs(urlparse(result["accessUrl"]).query)
        assert query["expires"] == [str(NOW + 7200)]
        token = VideoToken("dQw4w9WgXcQ", "Lesson 1", NOW + 7200)
        assert signer.verify(query["signature"][0], token, now=NOW).valid

    def test_missing_youtube_link_is_soft_failure(self, db_session, signer, test_user, test_product, active_license):
        content_file = add_file(db_session, test_product, content_type="video")
        assert mint(test_user.id, content_file.id, db_session, signer) == {
            "success": False, "error": "Video not configured"
        }

    def test_unparseable_youtube_link_is_soft_failure(self, db_session, signer, test_user, test_product, active_license):
        content_file = add_file(db_session, test_product, content_type="video", youtube_link="https://vimeo.com/1")
        assert mint(test_user.id, content_file.id, db_session, signer)["error"] == "Invalid YouTube link"


@pytest.mark.critical
class TestMintFailures:
    """Hard failures and their order"""

    def test_unauthenticated(self, db_session, signer, document_file):
        with pytest.raises(Unauthorized):
            mint(None, document_file.id, db_session, signer)

    @pytest.mark.parametrize("file_id", [None, "", "   "])
    def test_missing_file_id(self, db_session, signer, test_user, file_id):
        with pytest.raises(BadRequest) as exc_info:
            mint(test_user.id, file_id, db_session, signer)
        assert exc_info.value.message == "Product file ID is required"

    @pytest.mark.parametrize("file_id", [{"x": 1}, [1], 1.5, True])
    def test_malformed_file_id(self, db_session, signer, test_user, file_id):
        with pytest.raises(BadRequest) as exc_info:
            mint(test_user.id, file_id, db_session, signer)
        assert exc_info.value.message == "Invalid product file ID"

    def test_unauthenticated_with_malformed_file_id(self, db_session, signer):
        with pytest.raises(Unauthorized):
            mint(None, {"x": 1}, db_session, signer)

    @pytest.mark.parametrize("file_id", [999, "999", "not-a-number"])
    def test_unknown_file(self, db_session, signer, test_user, file_id):
        with pytest.raises(NotFound):
            mint(test_user.id, file_id, db_session, signer)

    def test_no_license(self, db_session, signer, test_user, document_file):
        with pytest.raises(Forbidden) as exc_info:
            mint(test_user.id, document_file.id, db_session, signer)
        assert exc_info.value.message == "Access denied. Please purchase this content."

    def test_license_checked_against_request_time(self, db_session, signer, test_user, test_product,
                                                  document_file, license_factory):
        license_factory(test_user, test_product, expires_at=datetime.fromtimestamp(NOW - 1, tz=timezone.utc))
        with pytest.raises(Forbidden):
            mint(test_user.id, document_file.id, db_session, signer)

    def test_unsupported_content_type(self, db_session, signer, test_user, test_product, active_license):
        content_file = add_file(db_session, test_product, content_type="audio")
        with pytest.raises(InternalError) as exc_info:
            mint(test_user.id, content_file.id, db_session, signer)
        assert exc_info.value.message == "Failed to generate content access"
        assert "audio" in exc_info.value.detail

    def test_disallowed_content_type(self, db_session, security_config, test_user, document_file, active_license):
        signer = ContentSigner(replace(security_config, allowed_content_types=("video",)))
        with pytest.raises(InternalError):
            mint(test_user.id, document_file.id, db_session, signer)

    def test_oversized_file(self, db_session, security_config, test_user, document_file, active_license):
        signer = ContentSigner(replace(security_config, max_file_size=1024))
        with pytest.raises(InternalError):
            mint(test_user.id, document_file.id, db_session, signer)

    def test_unauthenticated_wins_over_misconfiguration(self, db_session, document_file):
        with patch.object(content_tokens, "_signer", None):
            with patch.object(content_tokens.settings, "CONTENT_SIGNING_SECRET", ""):
                with pytest.raises(Unauthorized):
                    generate_content_access(None, document_file.id, db_session)

    def test_misconfigured_signer_surfaces_after_checks(self, db_session, test_user, document_file, active_license):
        with patch.object(content_tokens, "_signer", None):
            with patch.object(content_tokens.settings, "CONTENT_SIGNING_SECRET", "too-short"):
                with pytest.raises(ConfigurationError):
                    generate_content_access(test_user.id, document_file.id, db_session, now=NOW)


@pytest.mark.critical
class TestMintRateLimit:
    """Rate limiting of mint requests"""

    def test_limit_applies_per_user(self, db_session, signer, test_user, document_file, active_license):
        limiter = RateLimiter(InMemoryRateLimitStore(), limit=2, window_seconds=3600)
        for _ in range(2):
            assert mint(test_user.id, document_file.id, db_session, signer, limiter)["success"]
        with pytest.raises(RateLimited) as exc_info:
            mint(test_user.id, document_file.id, db_session, signer, limiter)
        assert exc_info.value.status_code == 429

    def test_unlicensed_requests_count_too(self, db_session, signer, test_user, document_file):
        limiter = RateLimiter(InMemoryRateLimitStore(), limit=1, window_seconds=3600)
        with pytest.raises(Forbidden):
            mint(test_user.id, document_file.id, db_session, signer, limiter)
        with pytest.raises(RateLimited):
            mint(test_user.id, document_file.id, db_session, signer, limiter)

    def test_unknown_files_do_not_count(self, db_session, signer, test_user):
        limiter = RateLimiter(InMemoryRateLimitStore(), limit=1, window_seconds=3600)
        for _ in range(3):
            with pytest.raises(NotFound):
                mint(test_user.id, 999, db_session, signer, limiter)
        assert limiter.store.get(str(test_user.id)) is None


class TestHelpers:
    def test_family_dispatch(self):
        assert ContentFamily.for_content_type("docx") is ContentFamily.DOCUMENT
        assert ContentFamily.for_content_type("video") is ContentFamily.VIDEO
        with pytest.raises(InternalError):
            ContentFamily.for_content_type("")

    def test_format_expiry(self):
        assert format_expiry(0) == "1970-01-01T00:00:00.000Z"
        assert format_expiry(NOW) == "2023-11-14T22:13:20.000Z"
