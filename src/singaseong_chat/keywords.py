"""Keyword clean-up for Korean stock-news summaries.

Takes documents with a summary-like field and a keywords-like field and
returns them with ``keywords`` replaced by a deduplicated, order-preserving
list of specific terms.  Generic labels such as ``"정부 관련"`` are refined
into a concrete phrase from the summary when possible, and short lists are
topped up with frequent summary tokens.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from pathlib import Path
from typing import Any, Iterable

_logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 6

GENERIC_KEYWORDS = frozenset({
    "정부 관련",
    "비즈니스 관련",
    "정부",
    "비즈니스",
    "정부 이슈",
    "산업 동향",
    "시장 동향",
    "일반 이슈",
    "정책 관련",
})

STOPWORDS = GENERIC_KEYWORDS | {
    "관련", "내용", "개요", "소식", "기사", "주가", "주식", "기업", "회사",
    "시장", "산업", "업계", "정책", "동향", "분석", "발표", "보고서", "업데이트",
}

_SUMMARY_FIELDS = ("summary", "overview", "description")
_KEYWORD_FIELDS = ("keywords", "keyword", "tags", "tagline", "keyphrases")

_PARTICLE_RE = re.compile(
    r"(은|는|이|가|을|를|과|와|에|에서|으로|으로써|에게|께서|에게서|께|한테|에서의|의"
    r"|도|만|까지|부터|조차|마저|마다|라며|라고|라는|이라|라|이다|하며|에게는)$"
)
_VERB_ENDING_RE = re.compile(
    r"(했다|했다가|했다고|하며|하면서|하고|하고서|하는|한다|할|하려|되며|되면서|되는"
    r"|된다|됐다|됐고|됐으며|됐다며|되자|되었다|되어|되어서|되었습니다|되었습니다만|도록|고|했)$"
)
_SEPARATOR_RE = re.compile(r"[\n,;•‣◦⁃∙]")
_PREFIX_RE = re.compile(r"^(?:\s*[-*•‣⁃◦·]\s*)?(?:키워드|개요)\s*[:：]\s*", re.IGNORECASE)
_BULLET_RE = re.compile(r"^(?:\s*[-*•‣⁃◦·]\s*|\d+\.\s*)")
_PUNCT = r"""\s"'“”‘’`´\-·•‣⁃◦\[\](){}<>,.!?:;"""
_PUNCT_TRIM_RE = re.compile(rf"^[{_PUNCT}]+|[{_PUNCT}]+$")
# \w minus underscore: unicode letters and digits.
_EDGE_NON_ALNUM_RE = re.compile(r"^[\W_]+|[\W_]+$")
_ACRONYM_RE = re.compile(r"^[A-Z0-9]{2,}$", re.IGNORECASE)


def _has_alnum(text: str) -> bool:
    return any(ch.isalnum() for ch in text)


def _squash(text: str) -> str:
    return re.sub(r"\s+", "", text).lower()


def sanitize_keyword(raw: Any) -> str:
    """Strip list markers, label prefixes and surrounding punctuation."""
    if not isinstance(raw, str):
        return ""
    keyword = raw.strip()
    keyword = _PREFIX_RE.sub("", keyword)
    keyword = _BULLET_RE.sub("", keyword)
    keyword = _PUNCT_TRIM_RE.sub("", keyword)
    keyword = re.sub(r"\s{2,}", " ", keyword)
    return keyword.strip()


def strip_particles(word: str) -> str:
    """Remove trailing particles and verb endings until nothing changes."""
    if not word:
        return ""
    cleaned = _PUNCT_TRIM_RE.sub("", word)
    while True:
        previous = cleaned
        cleaned = _PARTICLE_RE.sub("", cleaned)
        if len(cleaned) > 2:
            cleaned = _VERB_ENDING_RE.sub("", cleaned)
        if cleaned == previous:
            return cleaned


def is_generic_keyword(keyword: str) -> bool:
    if not keyword:
        return True
    if keyword in GENERIC_KEYWORDS:
        return True
    if len(keyword) <= 2 and not _ACRONYM_RE.match(keyword):
        return True
    if not _has_alnum(keyword):
        return True
    return keyword.endswith("관련") and len(keyword) <= 4


def dedupe(items: Iterable[str]) -> list[str]:
    """Drop empties and repeats, keeping first occurrences in order."""
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if not item or item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def tokenize_summary(summary: Any) -> list[str]:
    if not isinstance(summary, str):
        return []
    tokens = []
    for part in summary.split():
        token = strip_particles(_EDGE_NON_ALNUM_RE.sub("", part)).strip()
        if len(token) > 1 and _has_alnum(token):
            tokens.append(token)
    return tokens


def _is_covered(keyword: str, existing: list[str]) -> bool:
    normalized = _squash(keyword)
    if not normalized:
        return True
    for other in existing:
        squashed = _squash(other)
        if squashed and len(squashed) >= len(normalized) and normalized in squashed:
            return True
    return False


def _is_filler(token: str) -> bool:
    return not token or token in STOPWORDS or is_generic_keyword(token)


def refine_generic_keyword(keyword: str, summary: str) -> str:
    """Replace a generic label with the longest specific summary phrase
    containing its stem, e.g. ``"정부 관련"`` -> ``"정부 반도체"``."""
    if not summary:
        return ""
    base = re.sub(r"\s*관련$", "", keyword).strip()
    if not base:
        return ""

    tokens = [
        re.sub(r"관련$", "", strip_particles(part)).strip()
        for part in summary.split()
    ]
    tokens = [t for t in tokens if t]

    candidates: list[str] = []
    for idx, token in enumerate(tokens):
        if base not in token:
            continue
        phrase = [token]
        for following in tokens[idx + 1:]:
            if len(phrase) >= 3:
                break
            if not _is_filler(following):
                phrase.append(following)
        if len(phrase) == 1:
            for preceding in reversed(tokens[:idx]):
                if len(phrase) >= 3:
                    break
                if not _is_filler(preceding):
                    phrase.insert(0, preceding)

        candidate = sanitize_keyword(" ".join(phrase))
        if len(candidate) <= len(base) or is_generic_keyword(candidate):
            continue
        candidates.append(candidate)

    ordered = dedupe(sorted(candidates, key=lambda c: (-len(c), c)))
    return ordered[0] if ordered else ""


def extract_keywords_from_summary(
    summary: str, existing: list[str] | None = None, limit: int = 5,
) -> list[str]:
    """Most frequent specific summary tokens not already covered."""
    if not summary:
        return []
    existing = existing or []
    known = {_squash(k) for k in existing}
    counts: Counter[str] = Counter()
    for token in tokenize_summary(summary):
        if _squash(token) in known or _is_covered(token, existing):
            continue
        if token in STOPWORDS or len(token) <= 1:
            continue
        counts[token] += 1

    # Counter preserves first-seen order, which breaks remaining ties.
    ranked = sorted(counts.items(), key=lambda item: (-item[1], -len(item[0])))
    keywords = [token for token, _ in ranked if not is_generic_keyword(token)]
    return keywords[:limit]


def parse_keywords(
    raw_keywords: Any, summary: str = "", limit: int = DEFAULT_LIMIT,
) -> list[str]:
    raw_list = raw_keywords if isinstance(raw_keywords, list) else [raw_keywords]

    parsed: list[str] = []
    for raw in raw_list:
        if not isinstance(raw, str):
            continue
        for part in _SEPARATOR_RE.split(raw):
            keyword = sanitize_keyword(part)
            if not keyword:
                continue
            if is_generic_keyword(keyword):
                refined = refine_generic_keyword(keyword, summary)
                if refined:
                    parsed.append(refined)
                continue
            parsed.append(keyword)

    keywords = dedupe(parsed)
    if summary and len(keywords) < limit:
        extra = extract_keywords_from_summary(summary, keywords, limit - len(keywords))
        keywords = dedupe(keywords + extra)
    return keywords[:limit]


def _first_field(item: dict[str, Any], names: tuple[str, ...], default: Any) -> Any:
    for name in names:
        value = item.get(name)
        if value:
            return value
    return default


def normalize_item(item: Any, limit: int = DEFAULT_LIMIT) -> dict[str, Any] | None:
    """Return a copy of *item* with cleaned ``keywords``, or None if not a dict."""
    if not isinstance(item, dict):
        return None
    summary = _first_field(item, _SUMMARY_FIELDS, "")
    raw_keywords = _first_field(item, _KEYWORD_FIELDS, [])
    summary = summary if isinstance(summary, str) else ""
    return {**item, "keywords": parse_keywords(raw_keywords, summary, limit)}


def normalize_document(data: Any, limit: int = DEFAULT_LIMIT) -> Any:
    """Normalize a single document or a list of documents."""
    if isinstance(data, list):
        return [normalize_item(item, limit) or item for item in data]
    if isinstance(data, dict):
        return normalize_item(data, limit)
    raise ValueError("Unsupported input: provide a JSON object or array.")


def process_file(
    input_path: str | Path, output_path: str | Path, limit: int = DEFAULT_LIMIT,
) -> None:
    """Read JSON from *input_path*, normalize keywords, write *output_path*."""
    src = Path(input_path)
    with open(src, encoding="utf-8") as f:
        data = json.load(f)
    result = normalize_document(data, limit)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(result, f, ensure_ascii=False, indent=2)
    _logger.info("Wrote normalized keywords for %s to %s", src, output_path)
