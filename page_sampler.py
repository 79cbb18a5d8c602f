"""
Chooses which pages the vision extractor looks at.
"""
from models import PageWindow

DEFAULT_HEAD_PAGES = 4
DEFAULT_SAMPLE_STRIDE = 10
DEFAULT_TAIL_PAGES = 2
DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_OVERLAP = 1
DEFAULT_MAX_PAGES = 100


def sample_pages(
    total_pages: int,
    head_pages: int = DEFAULT_HEAD_PAGES,
    stride: int = DEFAULT_SAMPLE_STRIDE,
    tail_pages: int = DEFAULT_TAIL_PAGES
) -> list[int]:
    """
    Pick pages for character discovery.

    The sample size grows with document length only through the stride:
    1. The first pages (title, cast list, opening)
    2. One page every `stride` pages through the body
    3. The last pages (curtain call, final scene)

    Args:
        total_pages: Page count of the document
        head_pages: Leading pages always sampled
        stride: Distance between body samples
        tail_pages: Trailing pages always sampled

    Returns:
        Sorted, 0-indexed page numbers
    """
    if total_pages <= 0:
        return []
    if stride < 1:
        raise ValueError("stride must be at least 1")

    pages: set[int] = set(range(min(head_pages, total_pages)))
    pages.update(range(head_pages, total_pages, stride))
    pages.update(range(max(0, total_pages - tail_pages), total_pages))

    return sorted(pages)


def batch_windows(
    total_pages: int,
    batch_size: int = DEFAULT_BATCH_SIZE,
    overlap: int = DEFAULT_BATCH_OVERLAP,
    max_pages: int = DEFAULT_MAX_PAGES
) -> list[PageWindow]:
    """
    Split the document into overlapping page windows for guided extraction.

    Each window starts `overlap` pages before the previous one ended so a
    speech broken across a batch boundary is seen whole at least once.
    Pages past `max_pages` are never sent.

    Args:
        total_pages: Page count of the document
        batch_size: Pages per window
        overlap: Pages shared by consecutive windows
        max_pages: Hard ceiling on pages processed

    Returns:
        List of PageWindow objects in document order
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    if not 0 <= overlap < batch_size:
        raise ValueError("overlap must be smaller than batch_size")

    limit = min(total_pages, max_pages)
    windows: list[PageWindow] = []
    start = 0

    while start < limit:
        end = min(start + batch_size, limit)
        windows.append(PageWindow(
            batch_index=len(windows),
            start_page=start,
            end_page=end
        ))
        if end >= limit:
            break
        start = end - overlap

    return windows
