from typing import Iterable, List

MIN_TEXT_LENGTH = 20
MIN_WORD_LENGTH = 4
MIN_SHARED_KEYWORDS = 3

def keywords_of(text: str) -> List[str]:
    return [w for w in text.lower().split() if len(w) >= MIN_WORD_LENGTH]

def find_similar(text: str, tickets: Iterable, limit: int = 3) -> list:
    """
    Return up to ``limit`` tickets whose text or summary shares at least three
    longer words with ``text``. Keeps the order of ``tickets``.
    """
    if len(text) < MIN_TEXT_LENGTH:
        return []

    keywords = keywords_of(text)
    matches = []
    for ticket in tickets:
        summary = (ticket.classification or {}).get("summary") or ""
        haystack = f"{ticket.original_text} {summary}".lower()
        if sum(1 for k in keywords if k in haystack) >= MIN_SHARED_KEYWORDS:
            matches.append(ticket)
            if len(matches) >= limit:
                break
    return matches
