DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50


def normalize_page(page_raw, page_size_raw, default_size: int = DEFAULT_PAGE_SIZE):
    """Return (page, page_size); invalid or non-positive values fall back to defaults."""
    try:
        page = int(page_raw) if page_raw is not None else 1
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(page_size_raw) if page_size_raw is not None else default_size
    except (TypeError, ValueError):
        page_size = default_size
    page = page if page > 0 else 1
    page_size = default_size if page_size <= 0 else min(page_size, MAX_PAGE_SIZE)
    return page, page_size
