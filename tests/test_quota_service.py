import pytest

from pixelvault.application.services.quota_service import StorageUsage
from pixelvault.exceptions import NotFound, QuotaExceeded


@pytest.fixture
def nearly_full(users):
    users.users["u1"].storage_used = 900
    users.users["u1"].max_storage = 1000
    return users


def test_check_fits_denies_when_over_limit(quota, nearly_full):
    check = quota.check_fits("u1", 150)
    assert check.allowed is False
    assert check.reason == "Insufficient storage space"
    assert check.remaining == 100


def test_check_fits_allows_exact_limit(quota, nearly_full):
    assert quota.check_fits("u1", 100).allowed is True


def test_ensure_fits_raises_with_details(quota, nearly_full):
    with pytest.raises(QuotaExceeded) as exc:
        quota.ensure_fits("u1", 150)
    assert exc.value.used == 900
    assert exc.value.limit == 1000
    assert exc.value.requested == 150


def test_check_fits_rejects_negative_and_unknown_user(quota):
    with pytest.raises(ValueError):
        quota.check_fits("u1", -1)
    with pytest.raises(NotFound):
        quota.check_fits("nobody", 10)


def test_apply_delta_moves_usage(quota, nearly_full):
    assert quota.apply_delta("u1", 80) == 980
    assert quota.apply_delta("u1", -30) == 950
    assert nearly_full.users["u1"].storage_used == 950


def test_apply_delta_clamps_at_zero_and_audits(quota, users, audit):
    users.users["u1"].storage_used = 50
    assert quota.apply_delta("u1", -80) == 0
    assert users.users["u1"].storage_used == 0
    assert audit.actions() == ["storage_clamped"]


def test_apply_delta_unknown_user(quota):
    with pytest.raises(NotFound):
        quota.apply_delta("nobody", 10)


def test_usage_reports_percentage(quota, users):
    users.users["u1"].storage_used = 2500
    usage = quota.usage("u1")
    assert usage.used == 2500
    assert usage.available == 7500
    assert usage.percentage == 25.0
    assert StorageUsage(used=5, limit=0).percentage == 100.0
