# config/sources.py
# Regional feed catalogue for the Newsdesk crawler
# ================================================

"""
Every feed the crawler knows about lives here. The catalogue is grouped by
region so that adding a market is a matter of adding one dictionary; the
pipeline itself only ever sees validated ``Source`` contracts built from these
entries (see ``src.contracts.source``) and persisted through
``DatabaseManager.initialize_sources``.

Each entry carries:
- type: how the feed is fetched (``rss``, ``web_scraping`` or ``api``)
- language / country: the (language, region) pair the source is grouped under
- filters: per-source acceptance rules (keywords, length bounds, quality gate
  and the accepted-item cap for one crawl)
"""

from typing import Any, Dict, List

# Mainland China (zh / CN)
# ========================
# Trade press covering textiles, apparel manufacturing and sourcing.

CHINA_SOURCES = {
    "texindex_news": {
        "name": "中国纺织网 资讯",
        "type": "rss",
        "url": "https://www.texindex.com.cn/rss/news.xml",
        "category": "textile",
        "language": "zh",
        "country": "CN",
        "region": "asia",
        "is_active": True,
        "crawl_interval_minutes": 60,
        "filters": {
            "min_content_length": 150,
            "min_quality_score": 30,
            "max_articles_per_crawl": 30,
        },
    },
    "ccfgroup_market": {
        "name": "CCFGroup 化纤市场",
        "type": "rss",
        "url": "https://www.ccfgroup.com/rss/news.xml",
        "category": "fiber",
        "language": "zh",
        "country": "CN",
        "region": "asia",
        "is_active": True,
        "crawl_interval_minutes": 120,
        "filters": {
            "excluded_keywords": ["招聘", "广告"],
            "min_quality_score": 25,
        },
    },
    "efu_apparel": {
        "name": "服装资讯 (列表页)",
        "type": "web_scraping",
        "url": "https://news.efu.com.cn/newsview/",
        "category": "apparel",
        "language": "zh",
        "country": "CN",
        "region": "asia",
        "is_active": True,
        "crawl_interval_minutes": 180,
        "filters": {"min_content_length": 200, "max_articles_per_crawl": 10},
        "scraping_config": {
            "list_selector": "ul.news-list li",
            "link_selector": "a",
            "title_selector": "h1",
            "content_selector": "div.article-content",
            "summary_selector": "div.article-summary",
            "author_selector": "span.author",
            "image_selector": "div.article-content img",
            "date_selector": "span.publish-time",
        },
    },
}

# United States (en / US)
# =======================

US_SOURCES = {
    "wwd": {
        "name": "WWD",
        "type": "rss",
        "url": "https://wwd.com/feed/",
        "category": "fashion",
        "language": "en",
        "country": "US",
        "region": "north_america",
        "is_active": True,
        "crawl_interval_minutes": 60,
        "filters": {
            "excluded_keywords": ["sponsored", "giveaway"],
            "min_content_length": 300,
            "min_quality_score": 40,
        },
    },
    "sourcing_journal": {
        "name": "Sourcing Journal",
        "type": "rss",
        "url": "https://sourcingjournal.com/feed/",
        "category": "supply_chain",
        "language": "en",
        "country": "US",
        "region": "north_america",
        "is_active": True,
        "crawl_interval_minutes": 60,
        "filters": {
            "required_keywords": [
                "apparel", "textile", "sourcing", "factory", "denim", "cotton",
                "retail", "fashion",
            ],
            "min_quality_score": 35,
        },
    },
    "fashion_newswire": {
        "name": "Fashion newswire API",
        "type": "api",
        "url": "https://api.example-newswire.com",
        "category": "fashion",
        "language": "en",
        "country": "US",
        "region": "north_america",
        "is_active": False,
        "crawl_interval_minutes": 240,
        "filters": {"min_quality_score": 50},
        "api_config": {
            "endpoint": "https://api.example-newswire.com/v2/articles",
            "headers": {"X-Api-Key": "${FASHION_NEWSWIRE_KEY}"},
            "params": {"topic": "fashion", "page_size": 50},
            "items_path": "data.articles",
            "response_mapping": {
                "title": "headline",
                "content": "body",
                "summary": "teaser",
                "url": "links.canonical",
                "image": "media.lead.url",
                "author": "byline",
                "published_at": "published",
            },
        },
    },
}

# United Kingdom (en / GB)
# ========================

UK_SOURCES = {
    "just_style": {
        "name": "Just Style",
        "type": "rss",
        "url": "https://www.just-style.com/feed/",
        "category": "apparel",
        "language": "en",
        "country": "GB",
        "region": "europe",
        "is_active": True,
        "crawl_interval_minutes": 90,
        "filters": {"min_content_length": 250, "min_quality_score": 35},
    },
    "drapers": {
        "name": "Drapers",
        "type": "rss",
        "url": "https://www.drapersonline.com/rss",
        "category": "retail",
        "language": "en",
        "country": "GB",
        "region": "europe",
        "is_active": True,
        "crawl_interval_minutes": 120,
        "filters": {"min_quality_score": 85, "max_articles_per_crawl": 20},
    },
}

# Consolidated catalogue
# ======================

ALL_SOURCES: Dict[str, Dict[str, Any]] = {
    **CHINA_SOURCES,
    **US_SOURCES,
    **UK_SOURCES,
}

SUPPORTED_FETCH_TYPES = ("rss", "web_scraping", "api")


def get_active_sources() -> Dict[str, Dict[str, Any]]:
    """Entries with ``is_active`` set, in catalogue order."""
    return {
        source_id: source_config
        for source_id, source_config in ALL_SOURCES.items()
        if source_config.get("is_active", True)
    }


def get_sources_by_language(language: str) -> Dict[str, Dict[str, Any]]:
    return {
        source_id: source_config
        for source_id, source_config in ALL_SOURCES.items()
        if source_config["language"] == language
    }


def get_sources_by_region(language: str, country: str) -> Dict[str, Dict[str, Any]]:
    """Sources that belong to one (language, country) crawl region."""
    return {
        source_id: source_config
        for source_id, source_config in ALL_SOURCES.items()
        if source_config["language"] == language
        and source_config["country"] == country
    }


def list_regions() -> List[tuple]:
    seen: List[tuple] = []
    for source_config in ALL_SOURCES.values():
        key = (source_config["language"], source_config["country"])
        if key not in seen:
            seen.append(key)
    return seen


# Catalogue validation
# ====================


def validate_sources() -> int:
    """
    Check every entry for required fields, a known fetch type and a usable URL.

    Returns the number of validated sources; raises ``ValueError`` on the first
    broken entry.
    """
    required_fields = ["name", "type", "url", "category", "language", "country"]

    for source_id, source_config in ALL_SOURCES.items():
        for field in required_fields:
            if field not in source_config:
                raise ValueError(f"Source {source_id} is missing field {field}")

        if source_config["type"] not in SUPPORTED_FETCH_TYPES:
            raise ValueError(
                f"Source {source_id} has unsupported type {source_config['type']}"
            )

        url = source_config["url"]
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"Source {source_id} has an invalid URL: {url}")

        if source_config["type"] == "web_scraping" and not source_config.get(
            "scraping_config"
        ):
            raise ValueError(f"Source {source_id} needs a scraping_config")
        if source_config["type"] == "api" and not source_config.get("api_config"):
            raise ValueError(f"Source {source_id} needs an api_config")

    return len(ALL_SOURCES)
