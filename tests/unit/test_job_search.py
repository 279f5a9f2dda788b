import requests

from autoapply.config import Settings
from autoapply.core.job_search import JobSearchService, find_contact_email, html_to_text


class FakeResponse:
    def __init__(self, payload: dict):
        self.payload = payload

    def raise_for_status(self) -> None:
        return None

    def json(self) -> dict:
        return self.payload


class FakeHTTP:
    def __init__(self):
        self.calls: list[str] = []

    def get(self, url, params=None, timeout=None):
        self.calls.append("adzuna")
        raise requests.ConnectionError("adzuna down")

    def post(self, url, json=None, timeout=None):
        self.calls.append("jooble")
        return FakeResponse(
            {
                "jobs": [
                    {
                        "title": "<b>Python</b> Developer",
                        "company": "Acme",
                        "snippet": "Send CVs to <a>jobs@acme.io</a> today",
                        "link": "https://jooble.org/1",
                    },
                    {"title": "Data Engineer", "company": None, "snippet": "", "link": ""},
                ]
            }
        )


def test_html_helpers() -> None:
    assert html_to_text("<p>Hello <b>there</b></p>") == "Hello\nthere"
    assert find_contact_email("mail hr@corp.com now") == "hr@corp.com"
    assert find_contact_email("") is None


def test_failed_provider_is_skipped() -> None:
    settings = Settings(adzuna_app_id="id", adzuna_app_key="key", jooble_api_key="key")
    http = FakeHTTP()
    postings = JobSearchService(settings, http=http).search("python", "London", 5)

    assert http.calls == ["adzuna", "jooble"]
    assert [posting.source for posting in postings] == ["jooble", "jooble"]
    assert postings[0].title == "Python Developer"
    assert postings[0].contact_email == "jobs@acme.io"
    assert postings[1].company == ""
    assert postings[1].contact_email is None


def test_no_providers_returns_nothing() -> None:
    settings = Settings(adzuna_app_id="", adzuna_app_key="", jooble_api_key="")
    assert JobSearchService(settings, http=FakeHTTP()).search("python") == []


class AdzunaOnlyHTTP:
    def __init__(self, results: list[dict]):
        self.results = results

    def get(self, url, params=None, timeout=None):
        return FakeResponse({"results": self.results})


def test_malformed_posting_is_skipped_without_dropping_the_rest() -> None:
    settings = Settings(adzuna_app_id="id", adzuna_app_key="key", jooble_api_key="")
    http = AdzunaOnlyHTTP(
        [
            {"title": "Good", "company": {"display_name": "Acme"}, "description": "", "redirect_url": "u1"},
            {"title": "Bad", "company": {"display_name": None}, "description": "", "redirect_url": "u2"},
            {"title": "Broken", "company": "Not an object", "description": "", "redirect_url": "u3"},
        ]
    )
    postings = JobSearchService(settings, http=http).search("python", "", 10)

    assert [posting.title for posting in postings] == ["Good", "Bad"]
    assert postings[0].company == "Acme"
    assert postings[1].company == ""
