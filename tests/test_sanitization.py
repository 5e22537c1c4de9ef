import pytest

from school_intake.app.sanitization import clean_url, is_absolute_url, is_public_url, sanitize_text


def test_sanitize_text_drops_script_content():
    assert sanitize_text("<script>alert('x')</script>Acme U") == "Acme U"


def test_sanitize_text_keeps_text_of_other_markup():
    assert sanitize_text("<b>Acme</b> University") == "Acme University"


def test_sanitize_text_trims_and_preserves_plain_text():
    assert sanitize_text("  Springfield Elementary  ") == "Springfield Elementary"


@pytest.mark.parametrize("value", [None, ""])
def test_sanitize_text_handles_missing_values(value):
    assert sanitize_text(value) == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        ("https://acme.edu", True),
        ("http://intranet", True),
        ("acme.edu", False),
        ("not a url", False),
    ],
)
def test_is_absolute_url(value, expected):
    assert is_absolute_url(value) is expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("https://acme.edu", True),
        ("https://www.acme.edu/admissions?year=2026", True),
        ("http://intranet", False),
        ("", False),
    ],
)
def test_is_public_url(value, expected):
    assert is_public_url(value) is expected


def test_clean_url_trims_accepted_urls():
    assert clean_url("  https://acme.edu  ") == "https://acme.edu"


def test_clean_url_blanks_urls_failing_the_strict_check():
    assert clean_url("http://intranet") == ""
    assert clean_url(None) == ""


def test_sanitize_text_escapes_html_special_characters():
    assert sanitize_text("Texas A&M") == "Texas A&amp;M"
    assert sanitize_text("Grades 1 < 2") == "Grades 1 &lt; 2"
