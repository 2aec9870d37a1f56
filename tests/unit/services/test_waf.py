import pytest

from stoneguard.app.services.waf import (
    PATH_TRAVERSAL,
    SCANNER_USER_AGENT,
    SQL_INJECTION,
    XSS,
    WafFilter,
    iter_strings,
)

BROWSER = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


@pytest.fixture
def waf():
    return WafFilter()


def test_clean_request_passes(waf):
    categories = waf.inspect(
        "/quotes/3f1e/approve",
        ["page", "1"],
        BROWSER,
        {"comment": "Looks good, please proceed with the order", "amountPaid": 4000},
    )

    assert categories == []


@pytest.mark.parametrize("agent", ["sqlmap/1.7", "Nikto/2.5", "curl/8.4.0", "", "   "])
def test_scanner_or_missing_user_agent_blocked(waf, agent):
    assert SCANNER_USER_AGENT in waf.inspect("/quotes/1/approve", [], agent)


@pytest.mark.parametrize(
    "value",
    [
        "1 UNION SELECT password FROM users",
        "x'; DROP TABLE orders; --",
        "' or 1=1",
        "abc /* comment */",
    ],
)
def test_sql_injection_in_query(waf, value):
    assert SQL_INJECTION in waf.inspect("/quotes/1", ["q", value], BROWSER)


@pytest.mark.parametrize(
    "comment",
    [
        "Please update the delivery date; we selected marble from the catalog",
        "Please delete the veined slab from the list and update the colour set",
        "Insert the samples into the crate before dispatch",
        "Drop the second table top, union both selections into one order",
    ],
)
def test_sql_keywords_in_prose_are_not_flagged(waf, comment):
    assert waf.inspect("/quotes/1/reject", [], BROWSER, {"comment": comment}) == []


def test_quotes_and_parentheses_alone_are_not_flagged(waf):
    body = {"notes": "Buyer's transfer (ref 1234) sent"}

    assert waf.inspect("/orders/payment/submit/1", [], BROWSER, body) == []


def test_xss_in_nested_body(waf):
    body = {"items": [{"note": "<script>alert(1)</script>"}]}

    assert XSS in waf.inspect("/orders/payment/submit/1", [], BROWSER, body)


def test_xss_in_query(waf):
    assert XSS in waf.inspect("/quotes/1", ["redirect", "javascript:alert(1)"], BROWSER)


def test_path_traversal_in_path(waf):
    assert PATH_TRAVERSAL in waf.inspect("/quotes/../../etc/passwd", [], BROWSER)


def test_secret_fields_are_never_scanned(waf):
    body = {"passwordConfirmation": "<script>' or 1=1", "captchaToken": "../../x"}

    assert waf.inspect("/quotes/1/approve", [], BROWSER, body) == []


def test_iter_strings_yields_keys_and_values():
    payload = {"a": ["x", {"b": "y"}], "password": "secret", "n": 3}

    assert sorted(iter_strings(payload)) == ["a", "b", "n", "x", "y"]
