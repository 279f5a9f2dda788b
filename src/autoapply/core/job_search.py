from __future__ import annotations

import logging
from typing import Any

import requests
from bs4 import BeautifulSoup

from autoapply.config import Settings, get_settings
from autoapply.core.cv_parser import EMAIL_PATTERN
from autoapply.types import JobPosting

logger = logging.getLogger(__name__)


def html_to_text(value: str, *, single_line: bool = False) -> str:
    if not value:
        return ""
    soup = BeautifulSoup(value, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.extract()
    if single_line:
        return " ".join(soup.get_text(" ").split())
    lines = [line.strip() for line in soup.get_text("\n").splitlines() if line.strip()]
    return "\n".join(lines)


def find_contact_email(text: str) -> str | None:
    match = EMAIL_PATTERN.search(text or "")
    return match.group(0) if match else None


class JobSearchService:
    """Collects postings from the configured job boards, in provider order."""

    def __init__(self, settings: Settings | None = None, http: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.http = http or requests.Session()

    def search(self, keywords: str, location: str = "", limit: int = 20) -> list[JobPosting]:
        postings: list[JobPosting] = []
        for name, provider in self._providers():
            if len(postings) >= limit:
                break
            try:
                found = provider(keywords, location, limit - len(postings))
            except (requests.RequestException, ValueError, KeyError) as exc:
                logger.warning("Job search provider %s failed: %s", name, exc)
                continue
            logger.info("Job search provider %s returned %d postings", name, len(found))
            postings.extend(found)
        return postings[:limit]

    def _providers(self):
        providers = []
        if self.settings.adzuna_app_id and self.settings.adzuna_app_key:
            providers.append(("adzuna", self._search_adzuna))
        if self.settings.jooble_api_key:
            providers.append(("jooble", self._search_jooble))
        if not providers:
            logger.warning("No job search providers configured")
        return providers

    def _search_adzuna(self, keywords: str, location: str, limit: int) -> list[JobPosting]:
        url = f"{self.settings.adzuna_base_url}/{self.settings.adzuna_country}/search/1"
        params: dict[str, Any] = {
            "app_id": self.settings.adzuna_app_id,
            "app_key": self.settings.adzuna_app_key,
            "what": keywords,
            "results_per_page": limit,
            "content-type": "application/json",
        }
        if location:
            params["where"] = location
        response = self.http.get(url, params=params, timeout=self.settings.job_search_timeout_sec)
        response.raise_for_status()
        return _build_postings("adzuna", response.json().get("results", []), _adzuna_posting)

    def _search_jooble(self, keywords: str, location: str, limit: int) -> list[JobPosting]:
        url = f"{self.settings.jooble_base_url}/{self.settings.jooble_api_key}"
        payload = {"keywords": keywords, "location": location, "page": 1, "ResultOnPage": limit}
        response = self.http.post(url, json=payload, timeout=self.settings.job_search_timeout_sec)
        response.raise_for_status()
        return _build_postings("jooble", response.json().get("jobs", []), _jooble_posting)[:limit]


def _build_postings(source: str, items: list[dict[str, Any]], build) -> list[JobPosting]:
    postings = []
    for item in items:
        try:
            postings.append(build(item))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Skipping malformed %s posting: %s", source, exc)
    return postings


def _adzuna_posting(item: dict[str, Any]) -> JobPosting:
    description = html_to_text(item.get("description") or "")
    return JobPosting(
        title=html_to_text(item.get("title") or "", single_line=True),
        company=(item.get("company") or {}).get("display_name") or "",
        description=description,
        url=item.get("redirect_url") or "",
        contact_email=find_contact_email(description),
        source="adzuna",
    )


def _jooble_posting(item: dict[str, Any]) -> JobPosting:
    description = html_to_text(item.get("snippet") or "")
    return JobPosting(
        title=html_to_text(item.get("title") or "", single_line=True),
        company=item.get("company") or "",
        description=description,
        url=item.get("link") or "",
        contact_email=find_contact_email(description),
        source="jooble",
    )
