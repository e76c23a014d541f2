from __future__ import annotations

import hashlib
import html as _html
import re
import unicodedata
from collections import Counter
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup

_BOILERPLATE_PATTERNS: Iterable[re.Pattern] = [
    re.compile(r"^\s*read more\s*$", re.I),
    re.compile(r"^\s*continue reading\s*$", re.I),
    re.compile(r"^\s*the post .* appeared first on .*", re.I),
    re.compile(r"^\s*(阅读全文|查看原文)\s*$"),
]
_IMG_SRC_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.I)
_SLUG_DROP_RE = re.compile(r"[^\w\s-]")
_WORD_RE = re.compile(r"\w{2,}")

SUMMARY_LENGTH = 150
SLUG_MAX_LENGTH = 50
KEYWORD_LIMIT = 10


def normalize_text(text: str) -> str:
    """Single-line normalization: entities, NFKC, control chars, whitespace."""
    if not text:
        return ""
    text = _html.unescape(text)
    text = unicodedata.normalize("NFKC", text)
    text = text.replace("\x00", "").replace("\r", " ").replace("\n", " ")
    return " ".join(text.split())


def _collapse_lines(text: str) -> str:
    lines = [" ".join(line.split()) for line in text.replace("\r", "").split("\n")]
    collapsed = "\n".join(lines)
    collapsed = re.sub(r"\n{3,}", "\n\n", collapsed)
    return collapsed.strip()


def clean_html(html: str) -> str:
    """
    Strip markup while keeping paragraph structure.

    ``<br>`` becomes a newline and every ``<p>`` ends with a blank line so the
    quality assessor can still count paragraphs in the cleaned body.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    for node in list(soup.find_all(string=True)):
        if any(p.search(normalize_text(str(node))) for p in _BOILERPLATE_PATTERNS):
            node.extract()
    # breaks go into the tree; whitespace between tags is parser-dependent
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for paragraph in soup.find_all("p"):
        paragraph.append("\n\n")
    text = unicodedata.normalize("NFKC", _html.unescape(soup.get_text()))
    return _collapse_lines(text)


def first_image_url(html: str) -> Optional[str]:
    if not html:
        return None
    match = _IMG_SRC_RE.search(html)
    return match.group(1) if match else None


def generate_summary(text: str, length: int = SUMMARY_LENGTH) -> str:
    """First ``length`` characters of the flattened text, with ``...`` when cut."""
    flat = normalize_text(text)
    if len(flat) <= length:
        return flat
    return flat[:length] + "..."


def generate_slug(title: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    slug = _SLUG_DROP_RE.sub("", (title or "").lower())
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = slug[:max_length].strip("-")
    if not slug:
        digest = hashlib.sha1((title or "").encode("utf-8")).hexdigest()[:10]
        slug = f"article-{digest}"
    return slug


def extract_keywords(text: str, limit: int = KEYWORD_LIMIT) -> List[str]:
    """Most frequent word tokens of two or more characters, ties by first use."""
    tokens = _WORD_RE.findall((text or "").lower())
    counts = Counter(tokens)
    return [word for word, _count in counts.most_common(limit)]


def word_count(text: str) -> int:
    return len(normalize_text(text).split())
