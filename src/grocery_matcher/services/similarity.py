"""String similarity based on Levenshtein edit distance."""


def levenshtein_distance(s1: str, s2: str) -> int:
    """Compute the Levenshtein distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    if not s2:
        return len(s1)
    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (c1 != c2),
            ))
        previous = current
    return previous[-1]


def string_similarity(s1: str, s2: str) -> float:
    """
    Normalized similarity in [0, 1]: 1 - distance / longest length.

    Case-insensitive. Empty strings never count as similar (0.0).
    """
    a, b = s1.lower(), s2.lower()
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / max(len(a), len(b))


def are_similar(s1: str, s2: str, threshold: float = 0.7) -> bool:
    """Whether two strings reach the given similarity threshold."""
    return string_similarity(s1, s2) >= threshold
