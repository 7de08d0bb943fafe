"""
Signal Extractor

Resolves the three logical gesture signals (blink, mouth-open, brow-raise) from
the named blendshape scores the face landmarker produces for one frame.

Name lookup is two-phase: exact match on the category (or display) name first,
then a case-insensitive substring match, so that renamed or prefixed
blendshapes from other model versions still resolve. Anything that cannot be
resolved reads as 0, the same as a genuine low reading.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence

import numpy as np


# Candidate names per raw blendshape (ordered; first exact match wins)
EYE_BLINK_LEFT = ["eyeBlinkLeft"]
EYE_BLINK_RIGHT = ["eyeBlinkRight"]
MOUTH_OPEN = ["mouthOpen"]
JAW_OPEN = ["jawOpen"]
BROW_INNER_UP = ["browInnerUp"]
BROW_OUTER_UP_LEFT = ["browOuterUpLeft"]
BROW_OUTER_UP_RIGHT = ["browOuterUpRight"]


@dataclass
class BlendshapeScore:
    """One named expression score from the inference engine."""
    category_name: str
    score: Optional[float] = None
    display_name: Optional[str] = None


@dataclass
class FrameSignals:
    """Blink / mouth / brow readings (0-1) for a single frame."""
    blink: float
    mouth: float
    brow: float

    @classmethod
    def zero(cls) -> "FrameSignals":
        return cls(blink=0.0, mouth=0.0, brow=0.0)

    def to_dict(self) -> dict:
        return {"blink": self.blink, "mouth": self.mouth, "brow": self.brow}


def _from_mapping(item: Mapping[str, Any]) -> Optional[BlendshapeScore]:
    name = item.get("categoryName", item.get("category_name"))
    display = item.get("displayName", item.get("display_name"))
    if name is None and display is None:
        return None
    return BlendshapeScore(category_name=name or "", score=item.get("score"), display_name=display)


def _coerce_one(item: Any) -> Optional[BlendshapeScore]:
    if isinstance(item, BlendshapeScore):
        return item
    if isinstance(item, Mapping):
        return _from_mapping(item)
    if isinstance(item, (tuple, list)) and len(item) == 2 and isinstance(item[0], str):
        return BlendshapeScore(category_name=item[0], score=item[1])
    # MediaPipe Category objects
    if hasattr(item, "score") and (hasattr(item, "category_name") or hasattr(item, "display_name")):
        return BlendshapeScore(
            category_name=getattr(item, "category_name", None) or "",
            score=item.score,
            display_name=getattr(item, "display_name", None),
        )
    return None


def as_blendshape_scores(raw: Any) -> List[BlendshapeScore]:
    """
    Normalize whatever the upstream engine produced into a list of BlendshapeScore.

    Accepts None, a {name: score} mapping, (name, score) pairs, browser-style
    dicts ({"categoryName", "displayName", "score"}) or MediaPipe Category
    objects. Entries that do not look like a named score are skipped, and
    input that is not a collection at all reads as no scores.
    """
    if raw is None or isinstance(raw, (str, bytes)):
        return []
    if isinstance(raw, Mapping):
        if "categoryName" in raw or "category_name" in raw:
            one = _from_mapping(raw)
            return [one] if one else []
        return [BlendshapeScore(category_name=str(k), score=v) for k, v in raw.items()]
    if not isinstance(raw, Iterable):
        return []
    out: List[BlendshapeScore] = []
    for item in raw:
        cat = _coerce_one(item)
        if cat is not None:
            out.append(cat)
    return out


def _score(cat: BlendshapeScore) -> float:
    if cat.score is None:
        return 0.0
    try:
        value = float(cat.score)
    except (TypeError, ValueError):
        return 0.0
    if value != value:
        return 0.0
    return float(np.clip(value, 0.0, 1.0))


def get_blend(categories: Optional[Sequence[BlendshapeScore]], keys: Iterable[str]) -> float:
    """
    Score of the first category matching one of ``keys``.

    Exact name matches are tried key by key; if none is found, the first
    category whose name contains any key (case-insensitive) is used.
    Returns 0.0 when nothing matches.
    """
    if not categories:
        return 0.0
    keys = list(keys)
    for key in keys:
        for cat in categories:
            if cat.category_name == key or (cat.display_name and cat.display_name == key):
                return _score(cat)
    lowered = [k.lower() for k in keys]
    for cat in categories:
        name = (cat.category_name or cat.display_name or "").lower()
        if any(k in name for k in lowered):
            return _score(cat)
    return 0.0


def extract_frame_signals(raw: Any) -> FrameSignals:
    """Blink, mouth and brow readings for one frame; no input means all zeros."""
    cats = as_blendshape_scores(raw)
    if not cats:
        return FrameSignals.zero()

    blink = (get_blend(cats, EYE_BLINK_LEFT) + get_blend(cats, EYE_BLINK_RIGHT)) / 2.0
    mouth = max(get_blend(cats, MOUTH_OPEN), get_blend(cats, JAW_OPEN))

    brow_inner = get_blend(cats, BROW_INNER_UP)
    brow_outer = (get_blend(cats, BROW_OUTER_UP_LEFT) + get_blend(cats, BROW_OUTER_UP_RIGHT)) / 2.0
    brow = max(brow_inner, brow_outer)

    return FrameSignals(blink=blink, mouth=mouth, brow=brow)
