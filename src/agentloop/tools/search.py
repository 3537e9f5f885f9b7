"""
tools/search.py — Wikipedia Search Tool

Searches Wikipedia through the public MediaWiki API (no key required).
Snippets come back as HTML fragments and are flattened with BeautifulSoup.

Registered tools:
  - wikipedia_search → search entries, return titles, URLs and summaries
"""

from __future__ import annotations

import urllib.parse
from typing import Any

import httpx
from bs4 import BeautifulSoup

from agentloop.exceptions import ToolArgumentError, ToolExecutionError
from agentloop.observability.logger import get_logger
from agentloop.tools.types import tool

log = get_logger(__name__)

_API_URL = "https://{lang}.wikipedia.org/w/api.php"
_HEADERS = {
    "User-Agent": "agentloop/0.1 (https://www.mediawiki.org/wiki/API:Etiquette)",
    "Accept": "application/json",
}
_TIMEOUT = 15.0
_LANGUAGES = ("zh", "en")
_DEFAULT_MAX_RESULTS = 5


@tool(
    name="wikipedia_search",
    description=(
        "执行维基百科搜索并返回相关条目的链接和摘要。"
        "当需要查找百科知识、获取客观信息或了解特定主题时使用此工具。"
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "(必填) 提交给维基百科的搜索查询。",
            },
            "language": {
                "type": "string",
                "description": "(可选) 搜索的语言版本，可选值为'zh'(中文)或'en'(英文)。默认为'zh'。",
                "enum": list(_LANGUAGES),
                "default": "zh",
            },
            "num_results": {
                "type": "integer",
                "description": "(可选) 返回的搜索结果数量。默认为5。",
                "default": _DEFAULT_MAX_RESULTS,
            },
        },
        "required": ["query"],
    },
)
async def wikipedia_search(
    query: str = "",
    language: str = "zh",
    num_results: int = _DEFAULT_MAX_RESULTS,
    **_: Any,
) -> dict[str, Any]:
    """Return {"entries": [{title, url, description}], "search_url": ...}."""
    if not query.strip():
        raise ToolArgumentError("无效的查询参数")
    if language not in _LANGUAGES:
        language = "zh"
    num_results = min(max(int(num_results), 1), 20)

    log.debug("wikipedia_search.start", query=query, language=language, num_results=num_results)
    try:
        payload = await _query_api(query, language, num_results)
    except httpx.TimeoutException as e:
        raise ToolExecutionError("搜索超时") from e
    except httpx.HTTPError as e:
        raise ToolExecutionError(f"搜索失败: {e}") from e

    entries = _parse_entries(payload, language)
    log.debug("wikipedia_search.complete", query=query, result_count=len(entries))
    return {
        "entries": entries,
        "search_url": (
            f"https://{language}.wikipedia.org/wiki/Special:Search?search="
            f"{urllib.parse.quote(query)}"
        ),
    }


async def _query_api(query: str, language: str, limit: int) -> dict[str, Any]:
    async with httpx.AsyncClient(headers=_HEADERS, timeout=_TIMEOUT, follow_redirects=True) as client:
        response = await client.get(
            _API_URL.format(lang=language),
            params={
                "action": "query",
                "list": "search",
                "srsearch": query,
                "format": "json",
                "srlimit": limit,
            },
        )
        response.raise_for_status()
    return response.json()


def _parse_entries(payload: dict[str, Any], language: str) -> list[dict[str, str]]:
    entries = []
    for item in payload.get("query", {}).get("search", []):
        title = item.get("title")
        if not title:
            continue
        snippet = BeautifulSoup(item.get("snippet", ""), "html.parser").get_text()
        entries.append({
            "title": title,
            "url": f"https://{language}.wikipedia.org/wiki/{urllib.parse.quote(title.replace(' ', '_'))}",
            "description": snippet or "无摘要",
        })
    return entries
