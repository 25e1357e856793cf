import logging
from typing import Tuple

import markdown
import nh3
from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from config import IMAGE_PREFIX_NEW, IMAGE_PREFIX_OLD, MARKDOWN_EXTENSIONS

logger = logging.getLogger(__name__)

# allow-list for user generated content
UGC_TAGS = {
    "a", "abbr", "acronym", "b", "blockquote", "br", "caption", "cite", "code",
    "col", "colgroup", "dd", "del", "details", "dfn", "div", "dl", "dt", "em",
    "figcaption", "figure", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img",
    "ins", "kbd", "li", "mark", "ol", "p", "pre", "q", "rp", "rt", "ruby", "s",
    "samp", "small", "span", "strike", "strong", "sub", "summary", "sup",
    "table", "tbody", "td", "tfoot", "th", "thead", "time", "tr", "u", "ul", "var",
}
UGC_ATTRIBUTES = {
    "*": {"title", "lang", "dir"},
    "a": {"href"},
    "img": {"src", "alt", "width", "height"},
    "code": {"class"},
    "ol": {"start"},
    "td": {"align", "colspan", "rowspan"},
    "th": {"align", "colspan", "rowspan", "scope"},
    "time": {"datetime"},
}
UGC_URL_SCHEMES = {"http", "https", "mailto"}


def fixImagePaths(content: bytes) -> bytes:
    return content.replace(IMAGE_PREFIX_OLD, IMAGE_PREFIX_NEW)


def renderMarkdown(content: bytes) -> str:
    text = content.decode("utf-8", errors="replace")
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)


def sanitizeHTML(html: str) -> str:
    return nh3.clean(
        html,
        tags=UGC_TAGS,
        attributes=UGC_ATTRIBUTES,
        url_schemes=UGC_URL_SCHEMES,
        link_rel="nofollow noopener",
        strip_comments=True,
    )


def extractSummary(html: str) -> str:
    """Text of the first paragraph, "" when there is none or the markup can't be parsed."""
    try:
        doc = BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup as e:
        logger.warning("summary extraction failed: %s", e)
        return ""
    p = doc.find("p")
    if p is None:
        return ""
    return p.get_text()


def renderContent(content: bytes) -> Tuple[str, str]:
    """Raw markdown bytes -> (sanitized html, summary)."""
    unsafe = renderMarkdown(fixImagePaths(content))
    html = sanitizeHTML(unsafe)
    return html, extractSummary(html)
