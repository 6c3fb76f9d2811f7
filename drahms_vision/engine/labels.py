"""
Label Resolver

Normalizes free-text labels from different providers so that equivalent
answers fall into the same voting group.

Normalization:
- case-folding, whitespace collapsing, underscore/hyphen unification
- removal of parenthetical author citations ("Turdus migratorius (Linnaeus)")
- canonicalization of known synonyms (common <-> scientific names)

Synonyms come from a small built-in table and, optionally, a JSON file of
the form {"canonical display name": ["alias", ...]}.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedLabel:
    """A label mapped to its voting key."""
    key: str
    display: str
    canonical: bool = False  # True when matched through the synonym table


@dataclass
class SynonymEntry:
    display: str
    aliases: List[str] = field(default_factory=list)


# Common field-guide subjects across categories
DEFAULT_SYNONYMS: List[SynonymEntry] = [
    # Birds
    SynonymEntry("American Robin", ["turdus migratorius"]),
    SynonymEntry("House Sparrow", ["passer domesticus", "english sparrow"]),
    SynonymEntry("Northern Cardinal", ["cardinalis cardinalis", "redbird"]),
    SynonymEntry("Blue Jay", ["cyanocitta cristata"]),
    SynonymEntry("Bald Eagle", ["haliaeetus leucocephalus"]),
    SynonymEntry("Mallard", ["anas platyrhynchos", "mallard duck"]),
    # Insects
    SynonymEntry("Monarch Butterfly", ["danaus plexippus", "monarch"]),
    SynonymEntry("Western Honey Bee", ["apis mellifera", "honey bee", "honeybee", "european honey bee"]),
    SynonymEntry("Seven-spot Ladybird", ["coccinella septempunctata", "seven spotted ladybug"]),
    # Plants
    SynonymEntry("Common Dandelion", ["taraxacum officinale", "dandelion"]),
    SynonymEntry("Common Sunflower", ["helianthus annuus", "sunflower"]),
    SynonymEntry("Tomato", ["solanum lycopersicum", "lycopersicon esculentum"]),
    SynonymEntry("Red Maple", ["acer rubrum"]),
    # Animals
    SynonymEntry("Red Fox", ["vulpes vulpes"]),
    SynonymEntry("White-tailed Deer", ["odocoileus virginianus", "whitetail deer", "whitetail"]),
    SynonymEntry("Eastern Gray Squirrel", ["sciurus carolinensis", "grey squirrel", "gray squirrel"]),
    SynonymEntry("Raccoon", ["procyon lotor", "common raccoon"]),
    # Astronomy
    SynonymEntry("Moon", ["the moon", "luna", "earth's moon"]),
    SynonymEntry("International Space Station", ["iss", "space station"]),
    SynonymEntry("Orion", ["orion constellation", "the hunter"]),
    SynonymEntry("Pleiades", ["m45", "seven sisters"]),
    SynonymEntry("Andromeda Galaxy", ["m31", "andromeda"]),
    SynonymEntry("Venus", ["evening star", "morning star"]),
]


class LabelResolver:
    """
    Resolves provider labels to stable voting keys.

    Resolution is pure and deterministic: the same input always yields the
    same key, independent of the order entries were loaded in.
    """

    def __init__(
        self,
        synonyms: Optional[List[SynonymEntry]] = None,
        synonyms_path: Optional[str] = None,
    ):
        """
        Initialize label resolver.

        Args:
            synonyms: Synonym table (defaults to the built-in one)
            synonyms_path: Path to an additional JSON synonym file
        """
        self._alias_index: Dict[str, str] = {}
        self._display: Dict[str, str] = {}

        for entry in (DEFAULT_SYNONYMS if synonyms is None else synonyms):
            self.add_synonyms(entry.display, entry.aliases)

        if synonyms_path:
            self._load_file(synonyms_path)

    def add_synonyms(self, display: str, aliases: List[str]) -> None:
        """Register a canonical name and its aliases."""
        key = self.normalize(display)
        if not key:
            return
        self._display[key] = display.strip()
        self._alias_index[key] = key
        for alias in aliases:
            alias_key = self.normalize(alias)
            if alias_key:
                self._alias_index[alias_key] = key

    def _load_file(self, path_str: str) -> None:
        """Load additional synonyms from JSON."""
        path = Path(path_str)
        if not path.exists():
            logger.warning(f"Synonym file not found: {path}")
            return
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for display, aliases in data.items():
            self.add_synonyms(display, list(aliases))
        logger.info(f"Loaded {len(data)} synonym entries from {path}")

    @staticmethod
    def normalize(label: str) -> str:
        """Normalize a label string for comparison."""
        if not label:
            return ""
        s = re.sub(r"\([^)]*\)", " ", label)
        s = s.replace("_", " ").replace("-", " ")
        s = re.sub(r"[^\w\s']", " ", s)
        s = " ".join(s.casefold().split())
        return s

    def resolve(self, label: str) -> ResolvedLabel:
        """Map a raw label to its voting key and display form."""
        normalized = self.normalize(label)
        canonical_key = self._alias_index.get(normalized)
        if canonical_key is not None:
            return ResolvedLabel(
                key=canonical_key,
                display=self._display[canonical_key],
                canonical=True,
            )
        return ResolvedLabel(key=normalized, display=" ".join(label.split()))

    def same_subject(self, first: str, second: str) -> bool:
        return self.resolve(first).key == self.resolve(second).key

    def __len__(self) -> int:
        return len(self._display)


# Singleton instance
_label_resolver: Optional[LabelResolver] = None


def get_label_resolver(synonyms_path: Optional[str] = None) -> LabelResolver:
    """Get singleton label resolver instance."""
    global _label_resolver
    if _label_resolver is None:
        _label_resolver = LabelResolver(synonyms_path=synonyms_path)
    return _label_resolver
