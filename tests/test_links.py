from urllib.parse import parse_qs, urlsplit

import pytest

from bookstore.errors import ConfigurationError, InvalidArgumentError
from bookstore.links import AuthLinkBuilder


def test_builds_link_with_token_query():
    builder = AuthLinkBuilder("https://shop.example/")
    assert builder.email_confirmation_link("abc_DEF-1") == (
        "https://shop.example/auth/confirm-email?token=abc_DEF-1"
    )


def test_bare_host_defaults_to_https():
    builder = AuthLinkBuilder("shop.example")
    assert builder.password_reset_link("t").startswith("https://shop.example/auth/reset-password?")


def test_token_is_percent_encoded():
    builder = AuthLinkBuilder("https://shop.example")
    link = builder.build("auth/confirm-email", "a+b/c=d&e")

    assert "a+b" not in link
    assert parse_qs(urlsplit(link).query)["token"] == ["a+b/c=d&e"]


@pytest.mark.parametrize(
    "method, route",
    [
        ("email_confirmation_link", "/auth/confirm-email"),
        ("password_reset_link", "/auth/reset-password"),
        ("email_change_link", "/auth/confirm-email-change"),
        ("account_deletion_link", "/auth/confirm-account-deletion"),
        ("sensitive_change_link", "/auth/confirm-sensitive-change"),
    ],
)
def test_each_workflow_has_its_route(method, route):
    builder = AuthLinkBuilder("http://localhost:8000")
    link = getattr(builder, method)("tok")
    assert urlsplit(link).path == route


@pytest.mark.parametrize("base_url", [None, "", "   "])
def test_missing_base_url_is_a_configuration_error(base_url):
    with pytest.raises(ConfigurationError):
        AuthLinkBuilder(base_url)


@pytest.mark.parametrize("route, token", [("", "tok"), ("auth/confirm-email", ""), ("auth/x", "  ")])
def test_blank_route_or_token_is_rejected(route, token):
    builder = AuthLinkBuilder("https://shop.example")
    with pytest.raises(InvalidArgumentError):
        builder.build(route, token)
