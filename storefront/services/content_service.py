# storefront/services/content_service.py
import os
import re
from typing import List, Optional

import markdown

from storefront.domain.schemas import ContentOut, ContentSectionOut
from storefront.utils.settings import BASE_LOCALE, CONTENT_DIR, LOCALES
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PAGE_RE = re.compile(r"^[a-z0-9-]+$")
DEFAULT_TITLE = "Page Title"

_H1_RE = re.compile(r"<h1[^>]*>(.*?)</h1>", re.S)
_HEADING_RE = re.compile(r"<h([2-6])[^>]*>(.*?)</h\1>", re.S)
#istniejace linki i tagi zostawiamy, url-e szukamy tylko w tekscie
_SKIP_RE = re.compile(r"(<a\b.*?</a>|<[^>]+>)", re.S | re.I)
_URL_RE = re.compile(r"(?:https?://|www\.)[^\s<>\"']+\.[^\s<>\"']+")


def load_content(page: str, locale: str, content_dir: Optional[str] = None) -> str:
    """HTML strony dla jezyka, z fallbackiem na jezyk bazowy; "" gdy brak plikow."""
    if not PAGE_RE.match(page or ""):
        raise ValueError(f"invalid page name: {page!r}")

    content_dir = content_dir or CONTENT_DIR
    candidates = []
    if locale in LOCALES:
        candidates.append(locale)
    if BASE_LOCALE not in candidates:
        candidates.append(BASE_LOCALE)

    for candidate in candidates:
        path = os.path.join(content_dir, page, f"{candidate}.md")
        if os.path.isfile(path):
            if candidate != locale:
                logger.info(f"Content {page}/{locale} missing, using {candidate}")
            with open(path, encoding="utf-8") as f:
                return markdown.markdown(f.read(), extensions=["extra"])

    logger.warning(f"No content found for page {page}")
    return ""


def convert_urls_to_links(html: str) -> str:
    def link(match):
        url = match.group(0)
        href = f"https://{url}" if url.startswith("www.") else url
        return f'<a href="{href}" target="_blank" rel="noopener noreferrer">{url}</a>'

    parts = _SKIP_RE.split(html)
    # nieparzyste indeksy to tagi / gotowe linki
    return "".join(part if i % 2 else _URL_RE.sub(link, part) for i, part in enumerate(parts))


def parse_structured_content(html: str) -> dict:
    """
    Dzieli html na tytul (h1), intro (przed pierwszym h2) i drzewo sekcji h2-h6.

    Sekcja to {"title", "level", "content", "children"}; naglowek nizszego
    poziomu laduje w children ostatniej sekcji o wyzszym poziomie.
    """
    title = DEFAULT_TITLE
    match = _H1_RE.search(html)
    if match and match.group(1).strip():
        title = match.group(1).strip()
    body = _H1_RE.sub("", html, count=1).strip()

    headings = list(_HEADING_RE.finditer(body))
    first_h2 = next((h for h in headings if h.group(1) == "2"), None)
    intro_end = first_h2.start() if first_h2 else len(body)
    intro = convert_urls_to_links(body[:intro_end].strip())

    sections: List[dict] = []
    stack: List[dict] = []
    for i, heading in enumerate(headings):
        if heading.start() < intro_end:
            continue
        end = headings[i + 1].start() if i + 1 < len(headings) else len(body)
        section = {
            "title": heading.group(2).strip(),
            "level": int(heading.group(1)),
            "content": convert_urls_to_links(body[heading.end():end].strip()),
            "children": [],
        }
        while stack and stack[-1]["level"] >= section["level"]:
            stack.pop()
        if stack:
            stack[-1]["children"].append(section)
        else:
            sections.append(section)
        stack.append(section)

    return {"title": title, "intro": intro, "sections": sections}


class ContentService:
    def __init__(self, content_dir: Optional[str] = None):
        self.content_dir = content_dir or CONTENT_DIR

    def get_page(self, page: str, locale: str) -> ContentOut:
        html = load_content(page, locale, self.content_dir)
        parsed = parse_structured_content(html)
        return ContentOut(
            locale=locale,
            title=parsed["title"],
            intro=parsed["intro"],
            sections=[ContentSectionOut.model_validate(s) for s in parsed["sections"]],
        )
