import json
from datetime import datetime, timedelta, timezone

from mothercrop.defaults import DEFAULT_SITE_DATA, default_site_data
from mothercrop.merge import backfill_post, legacy_slug, merge_site_data
from mothercrop.utils import iso_timestamp

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def trashed_post(post_id, deleted_at):
    post = {"id": post_id, "title": f"Post {post_id}", "status": "trash"}
    if deleted_at is not None:
        post["deletedAt"] = deleted_at
    return post


def test_empty_input_yields_defaults():
    assert merge_site_data({}, now=NOW) == merge_site_data(None, now=NOW)
    merged = merge_site_data({}, now=NOW)
    assert merged["users"] == DEFAULT_SITE_DATA["users"]
    assert [post["slug"] for post in merged["blog"]] == [post["slug"] for post in DEFAULT_SITE_DATA["blog"]]
    assert merged["contact"] == DEFAULT_SITE_DATA["contact"]


def test_non_object_input_merges_as_empty_document():
    assert merge_site_data(["not", "a", "document"], now=NOW) == merge_site_data({}, now=NOW)


def test_merge_does_not_mutate_inputs():
    raw = {"blog": [{"id": 9, "title": "Hello World"}], "contact": {"phone": "1"}}
    snapshot = json.loads(json.dumps(raw))
    defaults = default_site_data()
    merge_site_data(raw, defaults, now=NOW)
    assert raw == snapshot
    assert defaults == DEFAULT_SITE_DATA


def test_merge_is_idempotent_through_json():
    raw = {
        "blog": [{"id": 9, "title": "Hello World", "excerpt": "Short"}],
        "servicesPage": {"items": [{"id": 1, "title": "Box"}]},
        "contact": {"phone": "555"},
        "subscribers": [{"id": 1, "email": "a@b.co"}],
    }
    once = merge_site_data(raw, now=NOW)
    twice = merge_site_data(json.loads(json.dumps(once)), now=NOW)
    assert twice == once


def test_legacy_post_is_backfilled():
    merged = merge_site_data({"blog": [{"id": 5, "title": "Hello World", "excerpt": "Short"}]}, now=NOW)
    post = merged["blog"][0]
    assert post["slug"] == "hello-world"
    assert post["status"] == "published"
    assert post["content"] == "Short"
    assert post["seo"] == {"metaTitle": "Hello World", "metaDescription": "Short", "keywords": ""}
    assert "deletedAt" not in post


def test_legacy_slug_falls_back_to_post():
    assert legacy_slug("") == "post"
    assert legacy_slug(None) == "post"
    assert legacy_slug("Two Words") == "two-words"


def test_backfill_keeps_existing_fields():
    post = {
        "id": 1,
        "title": "T",
        "slug": "custom",
        "content": "Body",
        "status": "draft",
        "seo": {"metaTitle": "M", "metaDescription": "D", "keywords": "k"},
    }
    assert backfill_post(post) == post


def test_trash_eviction_boundary():
    blog = [
        trashed_post(1, iso_timestamp(NOW - timedelta(days=30, seconds=1))),
        trashed_post(2, iso_timestamp(NOW - timedelta(days=29))),
        trashed_post(3, iso_timestamp(NOW - timedelta(days=30))),
        {"id": 4, "title": "Live", "status": "published"},
    ]
    merged = merge_site_data({"blog": blog}, now=NOW)
    assert [post["id"] for post in merged["blog"]] == [2, 4]


def test_trash_without_parseable_date_is_kept():
    merged = merge_site_data({"blog": [trashed_post(1, None), trashed_post(2, "yesterday-ish")]}, now=NOW)
    assert [post["id"] for post in merged["blog"]] == [1, 2]


def test_non_list_blog_falls_back_to_defaults():
    merged = merge_site_data({"blog": "broken"}, now=NOW)
    assert len(merged["blog"]) == len(DEFAULT_SITE_DATA["blog"])


def test_services_details_backfilled_positionally():
    default_items = DEFAULT_SITE_DATA["servicesPage"]["items"]
    raw = {
        "servicesPage": {
            "heroTitle": "Custom",
            "items": [
                {"id": 1, "title": "Box"},
                {"id": 2, "title": "Kept", "details": "Mine"},
                *[{"id": 100 + i, "title": f"Extra {i}"} for i in range(len(default_items))],
            ],
        }
    }
    merged = merge_site_data(raw, now=NOW)
    items = merged["servicesPage"]["items"]
    assert merged["servicesPage"]["heroTitle"] == "Custom"
    assert items[0]["details"] == default_items[0]["details"]
    assert items[1]["details"] == "Mine"
    assert items[-1]["details"] == ""


def test_services_non_list_items_and_missing_section():
    merged = merge_site_data({"servicesPage": {"heroTitle": "X", "items": None}}, now=NOW)
    assert merged["servicesPage"]["items"] == DEFAULT_SITE_DATA["servicesPage"]["items"]
    assert merged["servicesPage"]["heroTitle"] == "X"
    assert merge_site_data({}, now=NOW)["servicesPage"] == DEFAULT_SITE_DATA["servicesPage"]


def test_contact_fields_overlay_defaults():
    merged = merge_site_data({"contact": {"phone": "+1 555 0000"}}, now=NOW)
    assert merged["contact"]["phone"] == "+1 555 0000"
    assert merged["contact"]["email"] == DEFAULT_SITE_DATA["contact"]["email"]


def test_null_and_wrong_type_sections_fall_back():
    merged = merge_site_data({"home": None, "about": [], "users": {"bad": True}, "extra": 1}, now=NOW)
    assert merged["home"] == DEFAULT_SITE_DATA["home"]
    assert merged["about"] == DEFAULT_SITE_DATA["about"]
    assert merged["users"] == DEFAULT_SITE_DATA["users"]
    assert merged["extra"] == 1


def test_array_sections_taken_verbatim():
    merged = merge_site_data({"subscribers": [], "testimonials": [{"id": 7, "name": "N", "text": "T"}]}, now=NOW)
    assert merged["subscribers"] == []
    assert merged["testimonials"] == [{"id": 7, "name": "N", "text": "T"}]
