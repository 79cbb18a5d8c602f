"""
Speaker name cleanup: voice cues, collective cues and near-duplicate spellings.
"""
import logging
import re
from collections import Counter
from typing import Optional, Sequence

from models import ParsedScript

logger = logging.getLogger(__name__)

_APOSTROPHES = "'’"
_PREPOSITION_RE = re.compile(r"\b(?:DE|DU|DES)\s+|\bD['’]\s*")


def normalize_voice(name: str) -> str:
    """
    Reduce an off-stage voice cue to the speaker's name.

    "VOIX DE LUCIEN" -> "LUCIEN", "VOIX EXCÉDÉE 'ANNETTE" -> "ANNETTE".
    Cues without a recognizable separator ("VOIX OFF") are kept as is.
    """
    if not name.upper().startswith("VOIX"):
        return name
    rest = name[4:].strip()

    cut = max(rest.rfind(a) for a in _APOSTROPHES)
    if cut >= 0 and cut + 1 < len(rest):
        return rest[cut + 1:].strip()

    matches = list(_PREPOSITION_RE.finditer(rest))
    if matches and matches[-1].end() < len(rest):
        return rest[matches[-1].end():].strip()
    return name


def is_collective(name: str, labels: Sequence[str]) -> bool:
    upper = name.upper()
    return any(label in upper for label in labels)


def resolve_collective(recent_speakers: Sequence[str], joiner: str = " et ") -> Optional[str]:
    """Join the last two distinct recent speakers, most recent last."""
    distinct: list[str] = []
    for speaker in reversed(recent_speakers):
        if speaker not in distinct:
            distinct.append(speaker)
        if len(distinct) == 2:
            break
    if len(distinct) < 2:
        return None
    return f"{distinct[1]}{joiner}{distinct[0]}"


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance: single-character insertions, deletions and substitutions."""
    if a == b:
        return 0
    if not a or not b:
        return len(a) or len(b)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb)
            ))
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    """1 - edit distance / longer length; LUCIEN vs LUCIENNE is 0.75."""
    if not a and not b:
        return 1.0
    return 1.0 - edit_distance(a, b) / max(len(a), len(b))


def merge_similar_characters(
    script: ParsedScript,
    threshold: float = 0.8,
    joiner: str = " et "
) -> dict[str, str]:
    """
    Fold misspelled speaker variants into their most frequent spelling.

    A name is merged into a more frequent one when their similarity reaches
    the threshold, or when it ends with the other name after a space or
    apostrophe ("MADAME ANNETTE" -> "ANNETTE"). Joint speakers are left alone.
    Lines and the roster are rewritten in place; roster order follows first
    appearance.

    Returns:
        Mapping of replaced name -> kept name
    """
    counts = Counter(line.character for line in script.dialogue_lines())
    first_seen = {name: i for i, name in enumerate(script.characters)}
    ranked = sorted(counts, key=lambda n: (-counts[n], first_seen.get(n, len(first_seen))))

    redirect: dict[str, str] = {}
    for i, primary in enumerate(ranked):
        if primary in redirect or joiner in primary:
            continue
        for candidate in ranked[i + 1:]:
            if candidate in redirect or joiner in candidate:
                continue
            if (
                name_similarity(primary, candidate) >= threshold
                or candidate.endswith(f" {primary}")
                or any(candidate.endswith(f"{a}{primary}") for a in _APOSTROPHES)
            ):
                redirect[candidate] = primary

    if not redirect:
        return redirect

    for line in script.lines:
        if line.character in redirect:
            line.character = redirect[line.character]

    roster = []
    for name in script.characters:
        kept = redirect.get(name, name)
        if kept not in roster:
            roster.append(kept)
    script.characters = roster

    logger.debug("Merged character variants: %s", redirect)
    return redirect
