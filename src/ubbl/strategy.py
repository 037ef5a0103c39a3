"""Classification strategy dataclass and JSON persistence.

A ClassificationStrategy is the single configuration value the whole pipeline
is parametrized by: noise patterns, clause-boundary thresholds, expected
corpus band, and the keyword tables the metadata enricher matches against.

Three presets reproduce the historical extraction passes over one engine:

    proper   -- start-marker gated, list-item guard, full noise table (default)
    simple   -- no start marker, stricter clause-text threshold, short noise table
    outline  -- no start marker, no boundary thresholds beyond the lexical shape

Strategies round-trip through JSON. A JSON payload may name a preset (or
another strategy file) in ``inherits_from``; fields it sets override the
parent's.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

import orjson

from ubbl.corpus_types import BUILDING_TYPES, CATEGORIES


class StrategyError(ValueError):
    """Raised when a strategy payload is malformed."""


# ---------------------------------------------------------------------------
# Keyword tables
# ---------------------------------------------------------------------------

# Category rules are tried in order; the first family that matches wins.
CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("fire_safety", (
        "fire", "flame", "smoke", "emergency", "evacuation", "sprinkler", "alarm",
    )),
    ("structural", (
        "structural", "load", "foundation", "beam", "column", "concrete", "steel",
    )),
    ("plan_submission", ("plan", "submission", "approval", "permit")),
    ("accessibility", ("access", "disabled", "wheelchair", "ramp", "barrier")),
    ("environmental", ("ventilation", "lighting", "natural", "artificial")),
    ("spatial_requirements", (
        "space", "room", "area", "dimension", "height", "width",
    )),
    ("services", ("drainage", "water", "plumbing", "sanitary", "sewage")),
    ("construction_process", ("temporary", "demolition", "construction", "site")),
)

CALCULATION_TERMS: tuple[str, ...] = (
    "calculate", "computation", "formula", "minimum", "maximum", "percentage",
    "ratio", "area", "volume", "height", "width", "load", "capacity", "factor",
    "coefficient",
)

EXCEPTION_TERMS: tuple[str, ...] = (
    "except", "unless", "provided that", "subject to", "notwithstanding",
    "however", "but", "save",
)

CONNECTIVE_TERMS: tuple[str, ...] = (
    "and", "or", "if", "unless", "except", "provided", "where",
)

CRITICAL_TERMS: tuple[str, ...] = (
    "fire", "safety", "structural", "emergency", "danger", "critical",
)

HIGH_PRIORITY_TERMS: tuple[str, ...] = (
    "access", "health", "ventilation", "drainage", "sanitation",
)

BUILDING_TYPE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("residential", ("residential", "dwelling", "house", "apartment", "flat")),
    ("commercial", ("commercial", "office", "shop", "retail", "business")),
    ("industrial", ("industrial", "factory", "warehouse", "manufacturing")),
    ("institutional", ("institutional", "school", "hospital", "government", "public")),
    ("assembly", ("assembly", "theater", "theatre", "cinema", "hall", "auditorium")),
)

# Unknown -> assume broadly applicable, never an empty list.
DEFAULT_BUILDING_TYPES: tuple[str, ...] = (
    "residential", "commercial", "industrial", "institutional",
)

STOP_WORDS: tuple[str, ...] = (
    "the", "and", "or", "of", "in", "to", "for", "shall", "be", "a", "an", "is",
    "by", "with", "as", "at", "on", "may", "any", "all", "such", "where",
    "building", "authority", "person", "this", "that", "than", "which", "from",
    "have", "been", "into", "other", "there", "these", "those", "their", "under",
)

# ---------------------------------------------------------------------------
# Noise tables
# ---------------------------------------------------------------------------

PAGE_NOISE: tuple[str, ...] = (
    r"^Page\s+\d+",
    r"^\d+$",
    r"^[\d\s.\-]+$",
    r"^[^\w]*$",
)

BOILERPLATE_NOISE: tuple[str, ...] = (
    r"^UNIFORM\s+BUILDING",
    r"^UNDANG-UNDANG",
    r"^Published\b",
    r"^Copyright\b",
    r"^All\s+rights\s+reserved",
    r"^ISBN\b",
    r"^First\s+Edition",
    r"^Kementerian\b",
    r"^JABATAN\b",
    r"^WJD\d*",
    r"^Table\s+of\s+Contents",
    r"^Contents\b",
    r"^Index\b",
    r"^Appendix\b",
    r"^(?:First|Second|Third|Fourth|Fifth)?\s*Schedule\b",
    r"^Form\b",
    r"^Amendments?\b",
    r"^G\.\s*N\.",
)

BANNER_PATTERNS: tuple[str, ...] = (
    r"^UNIFORM\s+BUILDING\s+BY-?LAWS\s+1984",
)


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ClassificationStrategy:
    """Everything that varies between extraction passes over the same engine."""

    name: str = "proper"
    inherits_from: str | None = None

    # Line classification
    noise_patterns: tuple[str, ...] = PAGE_NOISE + BOILERPLATE_NOISE
    min_line_length: int = 5
    min_clause_text_length: int = 10     # clause text must be strictly longer
    list_item_max_length: int = 30       # 0 disables the list-item guard

    # Document state machine
    require_start_marker: bool = True
    banner_patterns: tuple[str, ...] = BANNER_PATTERNS
    default_part_title: str = "Unknown"
    title_borrow_threshold: int = 10
    estimated_page_count: int = 500

    # Validation
    expected_clause_range: tuple[int, int] = (200, 300)
    expected_clause_count: int = 258

    # Post-processing
    deduplicate: bool = False
    number_range: tuple[int, int] | None = None

    # Enrichment tables
    category_rules: tuple[tuple[str, tuple[str, ...]], ...] = CATEGORY_RULES
    calculation_terms: tuple[str, ...] = CALCULATION_TERMS
    exception_terms: tuple[str, ...] = EXCEPTION_TERMS
    connective_terms: tuple[str, ...] = CONNECTIVE_TERMS
    connective_threshold: int = 5
    complexity_length_thresholds: tuple[int, int, int, int] = (1000, 600, 300, 150)
    critical_terms: tuple[str, ...] = CRITICAL_TERMS
    high_priority_terms: tuple[str, ...] = HIGH_PRIORITY_TERMS
    building_type_rules: tuple[tuple[str, tuple[str, ...]], ...] = BUILDING_TYPE_RULES
    default_building_types: tuple[str, ...] = DEFAULT_BUILDING_TYPES
    stop_words: tuple[str, ...] = STOP_WORDS
    keyword_min_length: int = 4
    max_keywords: int = 8

    def __post_init__(self) -> None:
        for category, _terms in self.category_rules:
            if category not in CATEGORIES:
                raise StrategyError(f"Unknown category {category!r} in strategy {self.name!r}")
        for btype, _terms in self.building_type_rules:
            if btype not in BUILDING_TYPES:
                raise StrategyError(f"Unknown building type {btype!r} in strategy {self.name!r}")
        if not self.default_building_types:
            raise StrategyError("default_building_types cannot be empty")
        lo, hi = self.expected_clause_range
        if lo > hi:
            raise StrategyError(f"expected_clause_range is inverted: {lo} > {hi}")
        if len(self.complexity_length_thresholds) != 4:
            raise StrategyError("complexity_length_thresholds needs exactly 4 values")
        if self.estimated_page_count < 1:
            raise StrategyError("estimated_page_count must be >= 1")


DEFAULT_STRATEGY = ClassificationStrategy()

SIMPLE_STRATEGY = ClassificationStrategy(
    name="simple",
    noise_patterns=PAGE_NOISE + (
        r"^UNIFORM\s+BUILDING",
        r"^UNDANG-UNDANG",
        r"^Published\b",
        r"^Copyright\b",
        r"^ISBN\b",
        r"^WJD",
        r"^Table\s+of\s+Contents",
        r"^Amendments?\b",
        r"^G\.\s*N\.",
    ),
    min_clause_text_length=15,
    list_item_max_length=0,
    require_start_marker=False,
)

OUTLINE_STRATEGY = ClassificationStrategy(
    name="outline",
    noise_patterns=PAGE_NOISE,
    min_clause_text_length=0,
    list_item_max_length=0,
    require_start_marker=False,
)

PRESETS: dict[str, ClassificationStrategy] = {
    s.name: s for s in (DEFAULT_STRATEGY, SIMPLE_STRATEGY, OUTLINE_STRATEGY)
}


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def _json_compatible(value: Any) -> Any:
    """Recursively convert tuples into lists for JSON output."""
    if isinstance(value, (tuple, list)):
        return [_json_compatible(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _json_compatible(v) for k, v in value.items()}
    return value


def _to_tuple(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return tuple(_to_tuple(v) for v in value)
    return value


def strategy_to_dict(s: ClassificationStrategy) -> dict[str, Any]:
    """Convert a strategy to a JSON-serializable dict."""
    return _json_compatible(asdict(s))


def strategy_from_dict(d: dict[str, Any]) -> ClassificationStrategy:
    """Create a strategy from a dict, ignoring unknown and private keys."""
    strategy_fields = fields(ClassificationStrategy)
    valid_fields = {f.name for f in strategy_fields}
    tuple_fields = {
        f.name for f in strategy_fields
        if str(f.type).startswith("tuple[")
    }
    converted: dict[str, Any] = {}
    for key, val in d.items():
        if key not in valid_fields:
            continue
        if key in tuple_fields and isinstance(val, list):
            converted[key] = _to_tuple(val)
        else:
            converted[key] = val
    try:
        return ClassificationStrategy(**converted)
    except TypeError as exc:
        raise StrategyError(f"Invalid strategy payload: {exc}") from exc


def _load_json_payload(path: Path) -> dict[str, Any]:
    try:
        payload = orjson.loads(path.read_bytes())
    except (OSError, orjson.JSONDecodeError) as exc:
        raise StrategyError(f"Cannot load strategy {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise StrategyError(f"Strategy payload must be a JSON object: {path}")
    return payload


def resolve_strategy_dict(
    payload: dict[str, Any],
    *,
    source_path: Path | None = None,
    _visited: set[Path] | None = None,
) -> dict[str, Any]:
    """Resolve ``inherits_from`` against presets or other strategy files.

    Child values override parent values when present. Private keys
    (``_meta`` etc.) are dropped.
    """
    visited = set() if _visited is None else set(_visited)
    own = {
        k: v for k, v in payload.items()
        if not (isinstance(k, str) and k.startswith("_"))
    }
    parent_ref = own.get("inherits_from")
    if not isinstance(parent_ref, str) or not parent_ref.strip():
        return own
    ref = parent_ref.strip()

    if ref in PRESETS:
        base = strategy_to_dict(PRESETS[ref])
    else:
        base_dir = source_path.parent if source_path is not None else Path.cwd()
        parent_path = (base_dir / ref).resolve()
        if parent_path in visited:
            raise StrategyError(f"Circular inherits_from chain at {parent_path}")
        if not parent_path.exists():
            raise StrategyError(f"inherits_from target not found: {ref}")
        visited.add(parent_path)
        base = resolve_strategy_dict(
            _load_json_payload(parent_path),
            source_path=parent_path,
            _visited=visited,
        )

    merged = dict(base)
    merged.update(own)
    return merged


def load_strategy(path: Path) -> ClassificationStrategy:
    """Load a strategy from a JSON file, resolving inheritance."""
    payload = resolve_strategy_dict(_load_json_payload(path), source_path=path)
    return strategy_from_dict(payload)


def save_strategy(s: ClassificationStrategy, path: Path) -> None:
    """Save a strategy to a JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(
        orjson.dumps(strategy_to_dict(s), option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS)
    )


def get_strategy(name_or_path: str) -> ClassificationStrategy:
    """Return a preset by name, or load a strategy JSON file."""
    if name_or_path in PRESETS:
        return PRESETS[name_or_path]
    path = Path(name_or_path)
    if not path.exists():
        known = ", ".join(sorted(PRESETS))
        raise StrategyError(f"No preset or file named {name_or_path!r} (presets: {known})")
    return load_strategy(path)


def merge_strategy(base: ClassificationStrategy, update: dict[str, Any]) -> ClassificationStrategy:
    """Return ``base`` with the given fields replaced (unknown keys ignored)."""
    valid = {f.name for f in fields(ClassificationStrategy)}
    changes = {k: _to_tuple(v) if isinstance(v, list) else v for k, v in update.items() if k in valid}
    return replace(base, **changes)
