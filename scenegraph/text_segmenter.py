"""
TextSegmenter - split rich text into minimal style runs.

Each character resolves to the base style merged with its override entry.
Adjacent characters with the same resolved style and hyperlink target share
a run. Line/paragraph separators become break markers that keep their source
character as text, so joining every run's text gives back the input.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from scenegraph.nodes import NodeModel, Paint, TypeStyle
from scenegraph.style_resolver import ComputedStyle, text_declarations

# Separator -> number of line breaks it renders as
LINE_BREAKS = {
    '\u2028': 1,  # line separator
    '\u2029': 2,  # paragraph separator
    '\n': 1,
}

# CSS value that undoes a base declaration a run does not carry
_RESET_VALUES = {
    'font-style': 'normal',
    'text-decoration': 'none',
    'text-transform': 'none',
    'letter-spacing': 'normal',
    'text-indent': '0',
}


@dataclass(frozen=True)
class TextRun:
    """A maximal slice of text sharing one resolved style and link target."""
    text: str
    style: TypeStyle
    hyperlink: Optional[str] = None
    css: Dict[str, str] = field(default_factory=dict)
    is_break: bool = False
    line_breaks: int = 0

    @property
    def is_plain(self) -> bool:
        """No style delta vs. the base and no link: render as bare text."""
        return not self.is_break and not self.css and self.hyperlink is None

    @property
    def bold(self) -> bool:
        return (self.style.font_weight or 400) >= 600

    def to_dict(self) -> Dict:
        if self.is_break:
            return {'break': self.line_breaks, 'text': self.text}
        out = {'text': self.text, 'css': dict(self.css)}
        if self.hyperlink:
            out['href'] = self.hyperlink
        return out


def _link_target(style: TypeStyle) -> Optional[str]:
    return style.hyperlink.target if style.hyperlink else None


def _css_of(style: TypeStyle) -> Dict[str, str]:
    return ComputedStyle.from_fragments(text_declarations(style)).as_css()


def css_delta(style: TypeStyle, base: TypeStyle) -> Dict[str, str]:
    """Declarations where `style` differs from `base`."""
    base_css = _css_of(base)
    run_css = _css_of(style)

    delta = {k: v for k, v in run_css.items() if base_css.get(k) != v}
    for key in base_css:
        if key not in run_css:
            delta[key] = _RESET_VALUES.get(key, 'initial')
    return delta


def merge_runs(runs: Iterable[TextRun]) -> List[TextRun]:
    """Join adjacent non-break runs with equal style and link target."""
    merged: List[TextRun] = []
    for run in runs:
        if merged:
            prev = merged[-1]
            if (not prev.is_break and not run.is_break
                    and prev.hyperlink == run.hyperlink and prev.style == run.style):
                merged[-1] = replace(prev, text=prev.text + run.text)
                continue
        merged.append(run)
    return merged


def segment_text(
    characters: str,
    overrides: Sequence[int] = (),
    table: Optional[Mapping[str, TypeStyle]] = None,
    base_style: Optional[TypeStyle] = None,
    base_fills: Sequence[Paint] = (),
) -> List[TextRun]:
    """Segment `characters` into style runs.

    Args:
        characters: The text content
        overrides: Per-character override ids; shorter than the text means
            the remaining characters use the base style
        table: Override id -> partial TypeStyle
        base_style: The node's own text style
        base_fills: The node's fills, used as the base text color

    Returns:
        Ordered runs. Override id 0, a missing id, or an id not in the table
        all resolve to the base style.
    """
    table = table or {}
    base = base_style or TypeStyle()
    if base.fills is None:
        base = base.model_copy(update={'fills': tuple(base_fills)})

    resolved: Dict[int, TypeStyle] = {0: base}

    def style_for(index: int) -> TypeStyle:
        if index not in resolved:
            override = table.get(str(index))
            resolved[index] = base.merged(override) if override is not None else base
        return resolved[index]

    pieces: List[TextRun] = []
    for i, ch in enumerate(characters):
        if ch in LINE_BREAKS:
            pieces.append(TextRun(text=ch, style=base, is_break=True, line_breaks=LINE_BREAKS[ch]))
            continue
        style = style_for(overrides[i] if i < len(overrides) else 0)
        pieces.append(TextRun(text=ch, style=style, hyperlink=_link_target(style)))

    base_color = _css_of(base).get('color')
    runs = []
    for run in merge_runs(pieces):
        if run.is_break:
            runs.append(run)
            continue
        delta = css_delta(run.style, base) if run.style is not base else {}
        if run.hyperlink and 'color' not in delta and base_color:
            # Links keep the surrounding text color instead of the UA link color
            delta['color'] = base_color
        runs.append(replace(run, css=delta))
    return runs


def segment_node(node: NodeModel) -> List[TextRun]:
    """segment_text() over a TEXT node's own fields."""
    return segment_text(
        node.characters,
        node.character_style_overrides,
        node.style_override_table,
        node.style,
        node.fills,
    )


def font_families(node: NodeModel) -> Set[str]:
    """Font families used by a TEXT node, including override entries."""
    families = set()
    if node.style and node.style.font_family:
        families.add(node.style.font_family)
    for entry in node.style_override_table.values():
        if entry.font_family:
            families.add(entry.font_family)
    return families
