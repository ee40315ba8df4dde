"""
Tests for domain normalization and the authorization check
"""
import pytest

from pixel_tracker.services.domain_guard import (
    DOMAIN_MISMATCH,
    NO_DOMAIN_ASSIGNED,
    check_domain,
    extract_host,
    normalize_domain,
)


@pytest.mark.parametrize("raw,expected", [
    ("mystore.com", "mystore.com"),
    ("  MyStore.COM  ", "mystore.com"),
    ("https://www.mystore.com/", "mystore.com"),
    ("http://shop.mystore.com//", "shop.mystore.com"),
    ("www.mystore.com", "mystore.com"),
    ("", ""),
    (None, ""),
])
def test_normalize_domain(raw, expected):
    assert normalize_domain(raw) == expected


def test_extract_host_drops_port_and_path():
    assert extract_host("https://mystore.com:8443/products/a?b=1") == "mystore.com"


def test_extract_host_accepts_scheme_less_url():
    assert extract_host("mystore.com/cart") == "mystore.com"


def test_extract_host_of_empty_url():
    assert extract_host("") is None
    assert extract_host(None) is None


def test_matching_domain_is_allowed():
    check = check_domain("www.mystore.myshopify.com", "mystore.myshopify.com")

    assert check.allowed is True
    assert check.reason is None


def test_mismatched_domain_is_rejected():
    check = check_domain("evil.com", "mystore.myshopify.com")

    assert check.allowed is False
    assert check.reason == DOMAIN_MISMATCH
    assert check.message


def test_subdomain_is_not_the_same_domain():
    assert check_domain("blog.mystore.com", "mystore.com").reason == DOMAIN_MISMATCH


def test_missing_assignment_is_rejected():
    """No permissive fallback when nothing is assigned"""
    for assigned in (None, "", "   "):
        check = check_domain("mystore.com", assigned)
        assert check.allowed is False
        assert check.reason == NO_DOMAIN_ASSIGNED
