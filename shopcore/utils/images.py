"""Helpers for the comma-joined variant image field.

The field mixes absolute URLs, root-relative paths and base64 data URIs. A data URI
carries its own comma (``data:image/png;base64,AAAA``) which must never be treated as
a separator.
"""

from typing import Iterable, List, Optional, Sequence, Tuple, Union


ImageField = Union[None, str, Sequence[str]]


def _is_data_uri(value: str) -> bool:
    return value.startswith("data:")


def smart_split_urls(value: ImageField) -> List[str]:
    """Split an image field into individual URLs, keeping data URIs intact."""
    if not value:
        return []
    if not isinstance(value, str):
        out: List[str] = []
        for item in value:
            out.extend(smart_split_urls(item))
        return out

    parts = value.split(",")
    urls: List[str] = []
    i = 0
    while i < len(parts):
        part = parts[i].strip()
        # "data:image/png;base64" is only the header; the payload is the next chunk
        if _is_data_uri(part) and i + 1 < len(parts):
            urls.append(f"{part},{parts[i + 1].strip()}")
            i += 2
            continue
        if part:
            urls.append(part)
        i += 1
    return urls


def process_image_url(url: Optional[str]) -> Optional[str]:
    if url is None:
        return None
    value = str(url).strip()
    if not value:
        return None
    if _is_data_uri(value):
        return value if value.startswith("data:image/") and "," in value else None
    lowered = value.lower()
    if lowered.startswith(("http://", "https://", "//")):
        return value
    if value.startswith("/"):
        return value
    return f"/{value}"


def normalize_image_key(url: str) -> str:
    """Comparison key: base64 payloads compare verbatim, paths ignore a leading '/'."""
    value = (url or "").strip()
    if _is_data_uri(value):
        return value
    return value if value.startswith("/") else f"/{value}"


def images_equal(a: str, b: str) -> bool:
    if _is_data_uri(a or "") or _is_data_uri(b or ""):
        return a == b
    return normalize_image_key(a) == normalize_image_key(b)


def merge_images(existing: List[str], incoming: Iterable[str]) -> List[str]:
    """Union preserving order; duplicates are detected with ``images_equal``."""
    merged = list(existing)
    for url in incoming:
        if url and not any(images_equal(url, have) for have in merged):
            merged.append(url)
    return merged


def clean_image_urls(urls: Iterable) -> List[str]:
    cleaned: List[str] = []
    for item in urls or []:
        raw = item.get("url") if isinstance(item, dict) else item
        processed = process_image_url(raw)
        if processed and not any(images_equal(processed, have) for have in cleaned):
            cleaned.append(processed)
    return cleaned


def join_image_urls(urls: Iterable[str]) -> str:
    return ",".join(u for u in (process_image_url(x) for x in urls) if u)


def separate_main_and_variant_images(media: Iterable, variant_images: Iterable[str]) -> Tuple[List, List]:
    """Split product media into (main, variant) by membership in the variant image set."""
    keys = {normalize_image_key(u) for u in variant_images if u}
    main, variant = [], []
    for item in media or []:
        url = item.get("url") if isinstance(item, dict) else item
        if not url:
            continue
        if normalize_image_key(str(url)) in keys:
            variant.append(item)
        else:
            main.append(item)
    return main, variant
