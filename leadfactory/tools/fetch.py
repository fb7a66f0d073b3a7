from __future__ import annotations
import logging, re
from typing import Optional
import requests
from bs4 import BeautifulSoup

log = logging.getLogger("fetch")

UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

MAX_CHARS = 8000

def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "noscript", "svg"]):
        tag.decompose()
    text = soup.get_text("\n")
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()

def http_get_text(url: str, timeout: int = 25) -> Optional[str]:
    """Readable text of a prospect page (site, listing, social profile), capped at MAX_CHARS.

    Returns None when the page cannot be fetched; the Collector treats that as a missing source.
    """
    if not url.lower().startswith(("http://", "https://")):
        log.info("skipping non-http link %s", url)
        return None
    headers = {"User-Agent": UA, "Accept": "text/html,application/xhtml+xml"}
    try:
        r = requests.get(url, headers=headers, timeout=timeout)
        r.raise_for_status()
    except requests.RequestException as e:
        log.warning("fetch failed %s: %s", url, e)
        return None

    ctype = (r.headers.get("content-type") or "").lower()
    if "text/html" in ctype or "application/xhtml+xml" in ctype:
        return html_to_text(r.text)[:MAX_CHARS]
    if "pdf" in ctype:
        return f"[PDF] {url}"
    return r.text[:MAX_CHARS]
