"""
Image extraction heuristics for recipe pages.

Each heuristic is an independent CSS selector plus the attribute to read from
the first element it matches. Heuristics are tried in order, most explicit
marker first, and the first non-blank value wins. Add new heuristics by
appending to DEFAULT_HEURISTICS.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

from bs4 import BeautifulSoup


@dataclass(frozen=True)
class ImageHeuristic:
    """One selector/attribute pair in the extraction chain."""
    name: str
    selector: str
    attribute: str

    def extract(self, soup: BeautifulSoup) -> Optional[str]:
        element = soup.select_one(self.selector)
        if element is None:
            return None
        value = element.get(self.attribute)
        # Repeated attributes come back as a list
        if isinstance(value, list):
            value = " ".join(value)
        if not value or not value.strip():
            return None
        return value


@dataclass(frozen=True)
class ImageMatch:
    """An extracted image URL and the heuristic that found it."""
    url: str
    heuristic: str


DEFAULT_HEURISTICS: Sequence[ImageHeuristic] = (
    ImageHeuristic("og:image", 'meta[property="og:image"]', "content"),
    ImageHeuristic("twitter:image", 'meta[name="twitter:image"]', "content"),
    ImageHeuristic("recipe-image", ".recipe-image img", "src"),
    ImageHeuristic("post-thumbnail", ".post-thumbnail img", "src"),
    ImageHeuristic("itemprop-image", 'img[itemprop="image"]', "src"),
    ImageHeuristic("article-img", "article img", "src"),
)


def find_image(
    raw_body: Union[str, bytes, None],
    heuristics: Sequence[ImageHeuristic] = DEFAULT_HEURISTICS,
) -> Optional[ImageMatch]:
    """
    Run the heuristic chain over a page.

    Args:
        raw_body: Page HTML
        heuristics: Ordered heuristics to try

    Returns:
        First match, or None if no heuristic produced a value
    """
    if not raw_body:
        return None

    soup = BeautifulSoup(raw_body, "html.parser")
    for heuristic in heuristics:
        url = heuristic.extract(soup)
        if url is not None:
            return ImageMatch(url=url, heuristic=heuristic.name)
    return None


def extract_image(raw_body: Union[str, bytes, None]) -> Optional[str]:
    """Image URL from the default chain, or None."""
    match = find_image(raw_body)
    return match.url if match else None
