from hoa_admin.services.listing_cache import ListingCache


def test_invalidate_bumps_version_and_changes_etag():
    cache = ListingCache()
    initial = cache.etag("dues", 0, None)
    assert initial.startswith('W/"dues-')

    assert cache.invalidate("dues") == 1
    assert cache.etag("dues", 0, None) != initial
    assert cache.version("households") == 0


def test_etag_follows_stored_state_without_invalidation():
    cache = ListingCache()

    assert cache.etag("dues", 1, "2024-03-01 00:00:00") == cache.etag("dues", 1, "2024-03-01 00:00:00")
    assert cache.etag("dues", 1, "2024-03-01 00:00:00") != cache.etag("dues", 2, "2024-03-01 00:00:00")
