"""Content extraction for fetched website pages.

Uses BeautifulSoup to pull what website analysis needs from a page:
- Title from <title>
- Meta description
- Headings (h1-h3)
- Main text with navigation/footer boilerplate removed
- Outgoing links, for same-site crawling
"""

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

BOILERPLATE_SELECTORS = [
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "header",
    "nav",
    "footer",
    "form",
    "[role='navigation']",
    "[role='banner']",
    "[role='contentinfo']",
    ".cookie-banner",
    ".popup",
    ".modal",
]


@dataclass
class PageContent:
    """Text content of one fetched page."""

    url: str
    title: str | None = None
    meta_description: str | None = None
    headings: list[str] = field(default_factory=list)
    text: str = ""
    links: list[str] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    def to_prompt_section(self) -> str:
        """Render the page the way it is sent to analysis."""
        lines = [f"URL: {self.url}"]
        if self.title:
            lines.append(f"Title: {self.title}")
        if self.meta_description:
            lines.append(f"Description: {self.meta_description}")
        if self.headings:
            lines.append("Headings: " + " | ".join(self.headings[:20]))
        lines.append(self.text)
        return "\n".join(lines)


def extract_page_content(url: str, html: str) -> PageContent:
    """Extract title, description, headings, main text and links from HTML."""
    soup = BeautifulSoup(html, "html.parser")
    page = PageContent(url=url)

    title_tag = soup.find("title")
    if title_tag and title_tag.string:
        page.title = title_tag.string.strip()

    meta_desc = soup.find("meta", attrs={"name": "description"})
    if meta_desc and meta_desc.get("content"):
        page.meta_description = str(meta_desc.get("content")).strip()

    page.headings = [
        h.get_text(strip=True) for h in soup.find_all(["h1", "h2", "h3"]) if h.get_text(strip=True)
    ]
    page.links = [str(a["href"]) for a in soup.find_all("a", href=True)]

    for selector in BOILERPLATE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()

    main = soup.find("main") or soup.find(role="main") or soup.find("article") or soup.body or soup
    text = main.get_text(separator=" ", strip=True)
    page.text = re.sub(r"\s+", " ", text).strip()
    return page
