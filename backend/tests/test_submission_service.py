"""Tests for SubmissionService: creation, listing, edits and moderation."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.core.exceptions import (
    DuplicateSlugError,
    ForbiddenError,
    IllegalStateError,
    NotFoundError,
    ValidationError,
)
from launchspace.services.submission_service import SubmissionFilters, SubmissionService

from conftest import FIXED_NOW, submission_payload


# ============================================================================
# TESTS: CREATION
# ============================================================================

class TestCreateSubmission:
    """Tests for create_submission."""

    async def test_create_sets_defaults(self, test_db: AsyncSession):
        service = SubmissionService(test_db)

        submission = await service.create_submission(
            submission_payload(name="My Cool App!"), submitted_by="user-a", now=FIXED_NOW
        )

        assert submission.slug == "my-cool-app"
        assert submission.status == "pending"
        assert submission.launch_week == "2024-W10"
        assert submission.submitted_by == "user-a"
        assert submission.upvotes == 0
        assert submission.downvotes == 0
        assert submission.ranking_score == 0.0
        assert submission.views == 0
        assert submission.categories == ["Productivity"]
        assert submission.link_type == "nofollow"

    async def test_slug_collisions_get_numeric_suffix(self, test_db: AsyncSession):
        service = SubmissionService(test_db)

        first = await service.create_submission(submission_payload(name="My Cool App!"), "user-a")
        second = await service.create_submission(submission_payload(name="My Cool App!"), "user-b")
        third = await service.create_submission(submission_payload(name="my cool app"), "user-c")

        assert first.slug == "my-cool-app"
        assert second.slug == "my-cool-app-1"
        assert third.slug == "my-cool-app-2"

    async def test_explicit_slug_taken_raises(self, test_db: AsyncSession):
        service = SubmissionService(test_db)
        await service.create_submission(submission_payload(slug="foo"), "user-a")

        with pytest.raises(DuplicateSlugError):
            await service.create_submission(submission_payload(slug="foo"), "user-b")

    async def test_explicit_launch_week_is_kept(self, test_db: AsyncSession):
        service = SubmissionService(test_db)

        submission = await service.create_submission(
            submission_payload(launch_week="2024-W12"), "user-a", now=FIXED_NOW
        )

        assert submission.launch_week == "2024-W12"

    async def test_paid_plans_get_dofollow(self, test_db: AsyncSession):
        service = SubmissionService(test_db)

        premium = await service.create_submission(submission_payload(plan="premium"), "user-a")
        support = await service.create_submission(
            submission_payload(name="Bar", plan="support", backlink_url="https://blog.example.com/launch"),
            "user-a",
        )

        assert premium.link_type == "dofollow"
        assert premium.dofollow_reason == "premium"
        assert support.link_type == "dofollow"

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"name": ""}, "name"),
            ({"website_url": "not-a-url"}, "website_url"),
            ({"short_description": "short"}, "short_description"),
            ({"categories": []}, "categories"),
            ({"categories": ["a", "b", "c", "d"]}, "categories"),
            ({"pricing": "Expensive"}, "pricing"),
            ({"plan": "gold"}, "plan"),
            ({"launch_week": "week-ten"}, "launch_week"),
            ({"upvotes": 100}, "upvotes"),
        ],
    )
    async def test_invalid_payload_reports_field(self, test_db: AsyncSession, overrides, field):
        service = SubmissionService(test_db)

        with pytest.raises(ValidationError) as exc_info:
            await service.create_submission(submission_payload(**overrides), "user-a")

        assert any(err["field"] == field for err in exc_info.value.errors)

    async def test_missing_required_field(self, test_db: AsyncSession):
        payload = submission_payload()
        del payload["website_url"]

        with pytest.raises(ValidationError) as exc_info:
            await SubmissionService(test_db).create_submission(payload, "user-a")

        assert any(err["field"] == "website_url" for err in exc_info.value.errors)

    async def test_support_plan_requires_backlink(self, test_db: AsyncSession):
        with pytest.raises(ValidationError):
            await SubmissionService(test_db).create_submission(
                submission_payload(plan="support"), "user-a"
            )

    async def test_duplicate_categories_rejected(self, test_db: AsyncSession):
        with pytest.raises(ValidationError):
            await SubmissionService(test_db).create_submission(
                submission_payload(categories=["Chat", "chat"]), "user-a"
            )


# ============================================================================
# TESTS: LOOKUP AND LISTING
# ============================================================================

class TestListSubmissions:
    """Tests for lookups and filtered listings."""

    async def test_lookup_miss_returns_none(self, test_db: AsyncSession):
        service = SubmissionService(test_db)

        assert await service.get_by_slug("nope") is None
        assert await service.get_by_id(uuid4()) is None

    async def test_filter_by_status(self, test_db: AsyncSession, make_submission):
        await make_submission(name="Approved One", status="approved")
        await make_submission(name="Pending One", status="pending")

        items, total = await SubmissionService(test_db).list_submissions(
            SubmissionFilters(status="approved")
        )

        assert total == 1
        assert items[0].name == "Approved One"

    async def test_filter_by_category(self, test_db: AsyncSession, make_submission):
        await make_submission(name="Writer", categories=["Writing", "Marketing"])
        await make_submission(name="Coder", categories=["Developer Tools"])

        items, total = await SubmissionService(test_db).list_submissions(
            SubmissionFilters(category="Marketing")
        )

        assert total == 1
        assert items[0].name == "Writer"

    async def test_search_matches_name_description_or_category(self, test_db: AsyncSession, make_submission):
        await make_submission(name="Pixel Painter", categories=["Design"])
        await make_submission(
            name="Other", short_description="Generates pixel perfect icons", categories=["Icons"]
        )
        await make_submission(name="Third", categories=["Pixel Art"])
        await make_submission(name="Unrelated", categories=["Finance"])

        items, total = await SubmissionService(test_db).list_submissions(
            SubmissionFilters(search="pixel")
        )

        assert total == 3
        assert {s.name for s in items} == {"Pixel Painter", "Other", "Third"}

    async def test_search_escapes_wildcards(self, test_db: AsyncSession, make_submission):
        await make_submission(name="Hundred Percent")

        items, total = await SubmissionService(test_db).list_submissions(SubmissionFilters(search="%"))

        assert total == 0

    async def test_order_by_score_then_newest(self, test_db: AsyncSession, make_submission):
        older = await make_submission(name="Older")
        newer = await make_submission(name="Newer")
        best = await make_submission(name="Best")

        older.created_at = FIXED_NOW - timedelta(hours=2)
        newer.created_at = FIXED_NOW - timedelta(hours=1)
        best.ranking_score = 3.0
        await test_db.commit()

        items, _ = await SubmissionService(test_db).list_submissions()

        assert [s.name for s in items] == ["Best", "Newer", "Older"]

    async def test_pagination(self, test_db: AsyncSession, make_submission):
        for i in range(5):
            await make_submission(name=f"App {i}")

        service = SubmissionService(test_db)
        page1, total = await service.list_submissions(page=1, limit=2)
        page3, _ = await service.list_submissions(page=3, limit=2)

        assert total == 5
        assert len(page1) == 2
        assert len(page3) == 1

    async def test_invalid_pagination(self, test_db: AsyncSession):
        with pytest.raises(ValidationError):
            await SubmissionService(test_db).list_submissions(page=0)


# ============================================================================
# TESTS: OWNER EDITS AND DELETION
# ============================================================================

class TestUpdateSubmission:
    """Tests for update_submission and delete_submission."""

    async def test_owner_can_edit(self, test_db: AsyncSession, make_submission):
        submission = await make_submission(status="pending")

        updated = await SubmissionService(test_db).update_submission(
            submission.id,
            {"short_description": "A sharper description of foo", "categories": ["Chat", "Writing"]},
            user_id="user-a",
        )

        assert updated.short_description == "A sharper description of foo"
        assert updated.categories == ["Chat", "Writing"]

    async def test_other_user_cannot_edit(self, test_db: AsyncSession, make_submission):
        submission = await make_submission()

        with pytest.raises(ForbiddenError):
            await SubmissionService(test_db).update_submission(
                submission.id, {"name": "Hijacked"}, user_id="user-b"
            )

    @pytest.mark.parametrize("field", ["upvotes", "ranking_score", "status", "slug", "featured"])
    async def test_protected_fields_rejected(self, test_db: AsyncSession, make_submission, field):
        submission = await make_submission()

        with pytest.raises(ForbiddenError):
            await SubmissionService(test_db).update_submission(
                submission.id, {field: 1}, user_id="user-a"
            )

    async def test_unknown_field_rejected(self, test_db: AsyncSession, make_submission):
        submission = await make_submission()

        with pytest.raises(ValidationError):
            await SubmissionService(test_db).update_submission(
                submission.id, {"colour": "blue"}, user_id="user-a"
            )

    async def test_required_field_cannot_be_cleared(self, test_db: AsyncSession, make_submission):
        submission = await make_submission()

        with pytest.raises(ValidationError):
            await SubmissionService(test_db).update_submission(
                submission.id, {"name": None}, user_id="user-a"
            )

    async def test_edit_missing_submission(self, test_db: AsyncSession):
        with pytest.raises(NotFoundError):
            await SubmissionService(test_db).update_submission(uuid4(), {"name": "x"})

    async def test_delete_pending(self, test_db: AsyncSession, make_submission):
        submission = await make_submission(status="pending")
        service = SubmissionService(test_db)

        await service.delete_submission(submission.id, user_id="user-a")

        assert await service.get_by_slug(submission.slug) is None

    @pytest.mark.parametrize("status", ["approved", "live"])
    async def test_cannot_delete_after_moderation(self, test_db: AsyncSession, make_submission, status):
        submission = await make_submission(status=status)
        before = (submission.id, submission.slug, submission.status, submission.upvotes)

        with pytest.raises(IllegalStateError):
            await SubmissionService(test_db).delete_submission(submission.id, user_id="user-a")

        test_db.expire_all()
        stored = await SubmissionService(test_db).get_by_id(before[0])
        assert stored is not None
        assert (stored.id, stored.slug, stored.status, stored.upvotes) == before

    async def test_edit_rejects_duplicate_categories(self, test_db: AsyncSession, make_submission):
        submission = await make_submission(status="pending")

        with pytest.raises(ValidationError) as exc_info:
            await SubmissionService(test_db).update_submission(
                submission.id, {"categories": ["AI", "ai"]}, user_id="user-a"
            )

        assert any(err["field"] == "categories" for err in exc_info.value.errors)


# ============================================================================
# TESTS: MODERATION AND COUNTERS
# ============================================================================

class TestModeration:
    """Tests for status transitions, featuring and counters."""

    async def test_approve_sets_published_at(self, test_db: AsyncSession, make_submission):
        submission = await make_submission(status="pending")

        approved = await SubmissionService(test_db).set_status(submission.id, "approved", now=FIXED_NOW)

        assert approved.status == "approved"
        assert approved.published_at is not None

    async def test_reject_keeps_reason(self, test_db: AsyncSession, make_submission):
        submission = await make_submission(status="pending")

        rejected = await SubmissionService(test_db).set_status(
            submission.id, "rejected", rejection_reason="Broken link"
        )

        assert rejected.rejection_reason == "Broken link"

    @pytest.mark.parametrize("start, target", [("pending", "live"), ("rejected", "approved"), ("live", "pending")])
    async def test_illegal_transitions(self, test_db: AsyncSession, make_submission, start, target):
        submission = await make_submission(status=start)

        with pytest.raises(IllegalStateError):
            await SubmissionService(test_db).set_status(submission.id, target)

    async def test_featured_listing(self, test_db: AsyncSession, make_submission):
        submission = await make_submission(name="Star")
        await make_submission(name="Plain")
        service = SubmissionService(test_db)

        await service.set_featured(submission.id, True)
        featured = await service.get_featured()

        assert [s.name for s in featured] == ["Star"]

    async def test_increment_counters(self, test_db: AsyncSession, make_submission):
        submission = await make_submission()
        service = SubmissionService(test_db)

        assert await service.increment_views(submission.id)
        assert await service.increment_views(submission.id)
        assert await service.increment_clicks(submission.id)
        await test_db.refresh(submission)

        assert submission.views == 2
        assert submission.clicks == 1

    async def test_increment_missing_submission(self, test_db: AsyncSession):
        assert not await SubmissionService(test_db).increment_views(uuid4())

    async def test_user_stats(self, test_db: AsyncSession, make_submission):
        await make_submission(name="One", status="approved")
        await make_submission(name="Two", status="pending")
        await make_submission(name="Other", submitted_by="user-b")

        stats = await SubmissionService(test_db).get_user_stats("user-a")

        assert stats["total_apps"] == 2
        assert stats["approved_apps"] == 1
        assert stats["pending_apps"] == 1
