import asyncio

import pytest
from conftest import LOGIN_URL, FakePage, Screen, login_screen, page_factory_for

from relyhome_worker.errors import InvalidCredentials, MissingCredentials, RedirectedToLogin
from relyhome_worker.models import LoginRequest
from relyhome_worker.portal import (
    PortalLogin,
    find_any_tokenized_link,
    find_available_jobs_link,
    find_tokenized_portal_link,
    has_tokens,
)

DASHBOARD_URL = "https://relyhome.com/dashboard"
AVAILABLE_URL = "https://relyhome.com/jobs/accept/available-swo.php"
TOKENIZED_URL = AVAILABLE_URL + "?vid=42&exp=1700000000"


def _portal_page(dashboard_html: str) -> FakePage:
    page = FakePage()
    page.screens[LOGIN_URL] = login_screen(page, DASHBOARD_URL)
    page.screens[DASHBOARD_URL] = Screen(text="Welcome back", html=dashboard_html)
    return page


def _login(portal: PortalLogin, **fields):
    values = dict(username="worker@example.com", password="hunter2")
    values.update(fields)
    return asyncio.run(portal.login(LoginRequest(**values)))


def test_has_tokens_needs_both_markers():
    assert has_tokens(TOKENIZED_URL)
    assert not has_tokens(AVAILABLE_URL + "?vid=42")
    assert not has_tokens(None)


def test_find_tokenized_portal_link_resolves_relative_href():
    html = '<a href="/help?vid=1&exp=2">Help</a><a href="/jobs/accept/available-swo.php?vid=42&exp=1700000000">Jobs</a>'
    assert find_tokenized_portal_link(html, DASHBOARD_URL) == TOKENIZED_URL


def test_find_tokenized_portal_link_ignores_untokenized():
    assert find_tokenized_portal_link('<a href="/jobs/accept/available-swo.php">Available</a>', DASHBOARD_URL) is None


def test_find_available_jobs_link_by_text():
    html = '<a href="/about">About</a><a href="/list">Available Jobs</a>'
    assert find_available_jobs_link(html, DASHBOARD_URL) == "https://relyhome.com/list"


def test_find_any_tokenized_link():
    html = '<a href="/x">x</a><a href="/orders?exp=9&vid=3">Orders</a>'
    assert find_any_tokenized_link(html, DASHBOARD_URL) == "https://relyhome.com/orders?exp=9&vid=3"
    assert find_any_tokenized_link("<p>nothing</p>", DASHBOARD_URL) is None


def test_login_uses_tokenized_link_on_dashboard(settings, cache):
    page = _portal_page('<a href="/jobs/accept/available-swo.php?vid=42&exp=1700000000">Available SWOs</a>')
    page.context.jar.append({"name": "PHPSESSID", "value": "s", "domain": "relyhome.com", "path": "/"})
    closed = []
    portal = PortalLogin(settings, cache, page_factory=page_factory_for(page, closed))

    response = _login(portal)

    assert response.success is True
    assert response.portal_url == TOKENIZED_URL
    assert response.has_tokens is True
    assert response.refreshed_at
    assert page.visits == [LOGIN_URL]
    assert cache.is_fresh()
    assert closed == [page]


def test_login_follows_available_jobs_link(settings, cache):
    page = _portal_page('<a href="/jobs/accept/available-swo.php">Available Jobs</a>')
    page.goto_hooks[AVAILABLE_URL] = lambda: TOKENIZED_URL
    portal = PortalLogin(settings, cache, page_factory=page_factory_for(page))

    response = _login(portal)

    assert response.portal_url == TOKENIZED_URL
    assert page.visits == [LOGIN_URL, AVAILABLE_URL]


def test_login_picks_any_tokenized_link_on_listing(settings, cache):
    page = _portal_page("<p>No links here</p>")
    page.screens[AVAILABLE_URL] = Screen(html='<a href="/jobs/accept/offer.php?swo=1&vid=42&exp=17">Offer</a>')
    portal = PortalLogin(settings, cache, page_factory=page_factory_for(page))

    response = _login(portal)

    assert response.portal_url == "https://relyhome.com/jobs/accept/offer.php?swo=1&vid=42&exp=17"
    assert response.has_tokens is True
    assert page.visits == [LOGIN_URL, AVAILABLE_URL]


def test_login_without_tokens_returns_listing_url(settings, cache):
    page = _portal_page("<p>No links here</p>")
    portal = PortalLogin(settings, cache, page_factory=page_factory_for(page))

    response = _login(portal)

    assert response.portal_url == AVAILABLE_URL
    assert response.has_tokens is False


def test_login_redirected_back_to_login(settings, cache):
    page = _portal_page("<p>No links here</p>")
    page.goto_hooks[AVAILABLE_URL] = lambda: LOGIN_URL + "?next=available"
    portal = PortalLogin(settings, cache, page_factory=page_factory_for(page))

    with pytest.raises(RedirectedToLogin):
        _login(portal)


def test_login_requires_both_credentials(settings, cache):
    portal = PortalLogin(settings, cache, page_factory=page_factory_for(FakePage()))

    with pytest.raises(MissingCredentials):
        _login(portal, password=None)
    with pytest.raises(MissingCredentials):
        _login(portal, username="")


def test_login_failure_propagates(settings, cache):
    page = FakePage()
    page.screens[LOGIN_URL] = login_screen(page, LOGIN_URL + "?error=1")
    page.screens[LOGIN_URL + "?error=1"] = Screen(text="Invalid credentials")
    portal = PortalLogin(settings, cache, page_factory=page_factory_for(page))

    with pytest.raises(InvalidCredentials):
        _login(portal, password="wrong")
    assert cache.entry is None
