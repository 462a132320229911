"""
React Code Generator - TSX components from a compiled StyledNode tree.

Every box is emitted with the style the compiler computed, either as an inline
style object or as Tailwind arbitrary-property classes. Text nodes keep their
style runs: plain runs as bare text, styled runs as spans, links as anchors
and line-break markers as <br />.
"""

import json
import re
from typing import Dict, Mapping, Optional

from scenegraph.compiler import StyledNode
from scenegraph.base import NodeKind
from scenegraph.text_segmenter import TextRun

# React style keys whose values are unitless numbers
UNITLESS_KEYS = frozenset({'zIndex', 'opacity', 'fontWeight', 'flexGrow'})

_NUMBER_RE = re.compile(r'^-?\d+(\.\d+)?$')
_URL_RE = re.compile(r"url\('([^']*)'\)")


# ---------------------------------------------------------------------------
# Names and literals
# ---------------------------------------------------------------------------

def component_name_for(name: str) -> str:
    """PascalCase identifier for a node name."""
    component_name = re.sub(r'[^a-zA-Z0-9]', '', name.title())
    if not component_name:
        return 'Component'
    if not component_name[0].isalpha():
        component_name = 'Component' + component_name
    return component_name


def _js_value(key: str, value: str) -> str:
    if key in UNITLESS_KEYS and _NUMBER_RE.match(value):
        return value
    return json.dumps(value)


def _rewrite_urls(style: Dict[str, str], asset_urls: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Swap remote asset URLs for local paths."""
    if not asset_urls:
        return style
    image = style.get('backgroundImage')
    if not image:
        return style

    def swap(match) -> str:
        return f"url('{asset_urls.get(match.group(1), match.group(1))}')"

    return {**style, 'backgroundImage': _URL_RE.sub(swap, image)}


def _style_object(style: Dict[str, str]) -> str:
    """{{ key: 'value', ... }} JSX attribute body."""
    parts = [f"{key}: {_js_value(key, value)}" for key, value in style.items()]
    return '{{ ' + ', '.join(parts) + ' }}'


def _tailwind_classes(css: Dict[str, str]) -> str:
    """Arbitrary-property classes: [prop:value] with spaces as underscores."""
    classes = []
    for prop, value in css.items():
        value = value.replace('_', '\\_').replace(' ', '_').replace('"', "'")
        classes.append(f'[{prop}:{value}]')
    return ' '.join(classes)


def _text_literal(text: str) -> str:
    """JSX expression for text, keeping whitespace and braces intact."""
    return '{' + json.dumps(text, ensure_ascii=False) + '}'


def _attrs(node_style: Dict[str, str], css: Dict[str, str], use_tailwind: bool) -> str:
    if not node_style:
        return ''
    if use_tailwind:
        return f' className="{_tailwind_classes(css)}"'
    return f' style={_style_object(node_style)}'


# ---------------------------------------------------------------------------
# Node emitters
# ---------------------------------------------------------------------------

def _run_to_jsx(run: TextRun, use_tailwind: bool) -> str:
    if run.is_break:
        return '<br />' * run.line_breaks
    if run.is_plain:
        return _text_literal(run.text)

    react_style = {_camel(k): v for k, v in run.css.items()}
    attrs = _attrs(react_style, dict(run.css), use_tailwind)
    if run.hyperlink:
        href = json.dumps(run.hyperlink)
        return f'<a href={{{href}}}{attrs}>{_text_literal(run.text)}</a>'
    return f'<span{attrs}>{_text_literal(run.text)}</span>'


def _camel(prop: str) -> str:
    head, *rest = prop.split('-')
    return head + ''.join(part.capitalize() for part in rest)


def _node_to_jsx(
    node: StyledNode,
    indent: int,
    use_tailwind: bool,
    asset_urls: Optional[Mapping[str, str]],
) -> str:
    prefix = ' ' * indent
    react_style = _rewrite_urls(node.style.as_react(), asset_urls)
    css = {re.sub(r'([A-Z])', r'-\1', k).lower(): v for k, v in react_style.items()}
    attrs = _attrs(react_style, css, use_tailwind)

    lines = [f'{prefix}{{/* {node.name or node.kind.value} */}}'] if node.bitmap else []

    if node.kind is NodeKind.TEXT:
        inner = ''.join(_run_to_jsx(run, use_tailwind) for run in node.text_runs)
        lines.append(f'{prefix}<div{attrs}>{inner}</div>')
        return '\n'.join(lines)

    if not node.children:
        lines.append(f'{prefix}<div{attrs} />')
        return '\n'.join(lines)

    lines.append(f'{prefix}<div{attrs}>')
    for child in node.children:
        lines.append(_node_to_jsx(child, indent + 2, use_tailwind, asset_urls))
    lines.append(f'{prefix}</div>')
    return '\n'.join(lines)


def generate_react_code(
    node: StyledNode,
    component_name: str,
    use_tailwind: bool = False,
    asset_urls: Optional[Mapping[str, str]] = None,
) -> str:
    """Generate a React component (TSX) for a StyledNode tree.

    Args:
        node: Compiled root
        component_name: Exported component identifier
        use_tailwind: Emit className utilities instead of inline style objects
        asset_urls: Remote URL -> local path replacements for bundled assets
    """
    inner_jsx = _node_to_jsx(node, 4, use_tailwind, asset_urls)

    return f'''import React from 'react';

interface {component_name}Props {{
  className?: string;
}}

export const {component_name}: React.FC<{component_name}Props> = ({{
  className = '',
}}) => {{
  return (
    <div className={{className}}>
{_indent(inner_jsx, 2)}
    </div>
  );
}};

export default {component_name};
'''


def _indent(block: str, spaces: int) -> str:
    pad = ' ' * spaces
    return '\n'.join(pad + line if line else line for line in block.split('\n'))
