"""Tests for per-node style resolution."""
import warnings

import pytest

from scenegraph.assets import AssetMap
from scenegraph.config import CompilerConfig, PlaceholderFillHeuristic
from scenegraph.errors import StyleComputeWarning
from scenegraph.nodes import parse_node
from scenegraph.style_resolver import (
    ComputedStyle, compute_style, gradient_angle, resolve_corner_radius, resolve_effects,
    resolve_fill, resolve_stroke, resolve_style, resolve_transform,
)

BLACK = {'r': 0, 'g': 0, 'b': 0, 'a': 1}
WHITE = {'r': 1, 'g': 1, 'b': 1, 'a': 1}


def _node(**fields):
    raw = {'id': '1:1', 'name': 'n', 'type': 'RECTANGLE'}
    raw.update(fields)
    return parse_node(raw)


class TestFills:
    """Background from the first visible fill."""

    def test_first_visible_fill_wins(self):
        node = _node(fills=[
            {'type': 'SOLID', 'visible': False, 'color': {'r': 0, 'g': 1, 'b': 0, 'a': 1}},
            {'type': 'SOLID', 'color': {'r': 1, 'g': 0, 'b': 0, 'a': 1}},
            {'type': 'SOLID', 'color': {'r': 0, 'g': 0, 'b': 1, 'a': 1}},
        ])
        assert resolve_fill(node) == {'background_color': '#ff0000'}

    def test_white_container_fill_suppressed(self):
        node = _node(type='FRAME', fills=[{'type': 'SOLID', 'color': WHITE}])
        assert resolve_fill(node) == {}

    def test_near_black_container_fill_suppressed(self):
        node = _node(type='GROUP', fills=[{'type': 'SOLID', 'color': {'r': 0.02, 'g': 0.01, 'b': 0, 'a': 1}}])
        assert resolve_fill(node) == {}

    def test_faint_container_fill_suppressed(self):
        node = _node(type='FRAME', fills=[{'type': 'SOLID', 'color': {'r': 0.5, 'g': 0.2, 'b': 0.2, 'a': 0.1}}])
        assert resolve_fill(node) == {}

    def test_white_shape_fill_kept(self):
        node = _node(fills=[{'type': 'SOLID', 'color': WHITE}])
        assert resolve_fill(node) == {'background_color': '#ffffff'}

    def test_heuristic_can_be_disabled(self):
        node = _node(type='FRAME', fills=[{'type': 'SOLID', 'color': WHITE}])
        config = CompilerConfig(placeholder_fill=PlaceholderFillHeuristic(enabled=False))
        assert resolve_fill(node, config=config) == {'background_color': '#ffffff'}

    def test_image_fill_resolves_by_ref(self):
        node = _node(fills=[{'type': 'IMAGE', 'imageRef': 'abc', 'scaleMode': 'FIT'}])
        assets = AssetMap(version=1, urls={'abc': 'https://images.figma.com/abc.png'})
        fragment = resolve_fill(node, assets)
        assert fragment['background_image'] == "url('https://images.figma.com/abc.png')"
        assert fragment['background_size'] == 'contain'
        assert fragment['background_repeat'] == 'no-repeat'

    def test_image_fill_falls_back_to_node_id(self):
        node = _node(fills=[{'type': 'IMAGE', 'imageRef': 'missing', 'scaleMode': 'TILE'}])
        assets = AssetMap(version=1, urls={'1:1': 'https://images.figma.com/node.png'})
        fragment = resolve_fill(node, assets)
        assert 'node.png' in fragment['background_image']
        assert fragment['background_repeat'] == 'repeat'

    def test_image_fill_inline_url(self):
        node = _node(fills=[{'type': 'IMAGE', 'imageUrl': 'https://images.figma.com/inline.png', 'scaleMode': 'STRETCH'}])
        fragment = resolve_fill(node)
        assert 'inline.png' in fragment['background_image']
        assert fragment['background_size'] == '100% 100%'

    def test_unresolved_image_gets_placeholder(self):
        node = _node(fills=[{'type': 'IMAGE', 'imageRef': 'nope'}])
        assert resolve_fill(node) == {'background_color': '#e5e7eb'}

    def test_linear_gradient_left_to_right(self):
        node = _node(fills=[{
            'type': 'GRADIENT_LINEAR',
            'gradientHandlePositions': [{'x': 0, 'y': 0.5}, {'x': 1, 'y': 0.5}, {'x': 0, 'y': 1}],
            'gradientStops': [{'position': 0, 'color': BLACK}, {'position': 0.5, 'color': WHITE}],
        }])
        assert resolve_fill(node) == {
            'background_image': 'linear-gradient(90deg, #000000 0%, #ffffff 50%)'
        }

    def test_linear_gradient_angle_from_transform(self):
        node = _node(fills=[{
            'type': 'GRADIENT_LINEAR',
            'gradientTransform': [[0, 1, 0], [-1, 0, 1]],
            'gradientStops': [{'position': 0, 'color': BLACK}, {'position': 1, 'color': WHITE}],
        }])
        assert gradient_angle(node.fills[0]) == 180

    def test_radial_gradient_centered_on_first_handle(self, radial_rect):
        fragment = resolve_fill(parse_node(radial_rect))
        assert fragment['background_image'].startswith('radial-gradient(ellipse at 25% 50%')

    def test_diamond_gradient_clip_path(self):
        node = _node(fills=[{
            'type': 'GRADIENT_DIAMOND',
            'gradientStops': [{'position': 0, 'color': BLACK}, {'position': 1, 'color': WHITE}],
        }])
        fragment = resolve_fill(node)
        assert fragment['background_image'].startswith('radial-gradient(')
        assert fragment['clip_path'] == 'polygon(50% 0%, 100% 50%, 50% 100%, 0% 50%)'

    def test_unknown_fill_warns(self):
        node = _node(fills=[{'type': 'VIDEO'}])
        with pytest.warns(StyleComputeWarning):
            assert resolve_fill(node) == {}

    def test_typeless_fill_warns(self):
        node = _node(fills=[{}])
        with pytest.warns(StyleComputeWarning, match="Unrecognized fill type ''"):
            assert resolve_fill(node) == {}, "A paint without a type must not render as black"

    def test_colorless_solid_fill_skipped(self):
        node = _node(fills=[{'type': 'SOLID'}])
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            assert resolve_fill(node) == {}

    def test_text_fill_is_color_not_background(self, hello_text):
        fragment = resolve_style(parse_node(hello_text))
        assert fragment['color'] == '#000000'
        assert 'background_color' not in fragment


class TestStrokes:
    """Border or outline, shapes only."""

    def test_dashed_border(self, dashed_rect):
        fragment = resolve_stroke(parse_node(dashed_rect))
        assert fragment == {'border_width': '2px', 'border_style': 'dashed', 'border_color': '#000000'}

    def test_per_side_widths(self, per_side_stroke_rect):
        fragment = resolve_stroke(parse_node(per_side_stroke_rect))
        assert fragment['border_width'] == '2px 0px 4px 0px'
        assert fragment['border_style'] == 'solid'

    def test_outside_stroke_is_outline(self):
        node = _node(strokes=[{'type': 'SOLID', 'color': BLACK}], strokeWeight=3, strokeAlign='OUTSIDE')
        assert resolve_stroke(node) == {'outline': '3px solid #000000'}

    def test_typeless_stroke_warns(self):
        node = _node(strokes=[{'opacity': 1}], strokeWeight=2)
        with pytest.warns(StyleComputeWarning, match="Unrecognized stroke type ''"):
            assert resolve_stroke(node) == {}

    def test_colorless_solid_stroke_skipped(self):
        node = _node(strokes=[{'type': 'SOLID'}], strokeWeight=2)
        assert resolve_stroke(node) == {}

    def test_containers_never_get_strokes(self):
        node = _node(type='FRAME', strokes=[{'type': 'SOLID', 'color': BLACK}], strokeWeight=1)
        assert resolve_stroke(node) == {}


class TestCornerRadius:
    """Per-corner values override the uniform radius."""

    def test_explicit_corner_over_uniform(self, corner_rect):
        fragment = resolve_corner_radius(parse_node(corner_rect))
        assert fragment == {'border_radius': '8px 4px 4px 4px'}

    def test_rest_radii_array(self):
        node = _node(rectangleCornerRadii=[0, 12, 12, 0])
        assert resolve_corner_radius(node) == {'border_radius': '0px 12px 12px 0px'}

    def test_uniform_radius(self):
        assert resolve_corner_radius(_node(cornerRadius=6)) == {'border_radius': '6px'}

    def test_ellipse_is_round(self):
        assert resolve_corner_radius(_node(type='ELLIPSE')) == {'border_radius': '50%'}

    def test_no_radius(self):
        assert resolve_corner_radius(_node()) == {}


class TestEffects:
    """Shadows and blurs."""

    def test_rect_effects(self, shadowed_rect):
        fragment = resolve_effects(parse_node(shadowed_rect))
        assert fragment['filter'] == 'drop-shadow(0px 4px 8px rgba(0, 0, 0, 0.25))'
        assert fragment['box_shadow'] == 'inset 0px 2px 4px 1px rgba(0, 0, 0, 0.5)'
        assert fragment['backdrop_filter'] == 'blur(10px)'

    def test_text_drop_shadow_is_text_shadow(self):
        node = _node(type='TEXT', effects=[{
            'type': 'DROP_SHADOW', 'radius': 2, 'color': BLACK, 'offset': {'x': 1, 'y': 1},
        }])
        fragment = resolve_effects(node)
        assert fragment == {'text_shadow': '1px 1px 2px #000000'}

    def test_layer_blur(self):
        node = _node(effects=[{'type': 'LAYER_BLUR', 'radius': 5}])
        assert resolve_effects(node) == {'filter': 'blur(5px)'}

    def test_hidden_effect_ignored(self):
        node = _node(effects=[{'type': 'LAYER_BLUR', 'radius': 5, 'visible': False}])
        assert resolve_effects(node) == {}

    def test_unknown_effect_warns(self):
        node = _node(effects=[{'type': 'GLOW', 'radius': 5}])
        with pytest.warns(StyleComputeWarning):
            assert resolve_effects(node) == {}


class TestTransform:
    """Scale, skew, mirror, matrix; rotation ignored."""

    def test_order(self):
        node = _node(
            rotation=45,
            scale={'x': 2, 'y': 1},
            skew=10,
            mirror='HORIZONTAL',
            transform=[1, 0, 0, 1, 5, 5],
        )
        assert resolve_transform(node) == {
            'transform': 'scale(2, 1) skew(10deg) scaleX(-1) matrix(1, 0, 0, 1, 5, 5)'
        }

    def test_rotation_only_emits_nothing(self):
        assert resolve_transform(_node(rotation=30)) == {}

    def test_blend_modes(self):
        assert 'mix_blend_mode' not in resolve_style(_node(blendMode='PASS_THROUGH'))
        assert resolve_style(_node(blendMode='MULTIPLY'))['mix_blend_mode'] == 'multiply'


class TestTypography:
    """Base text style declarations."""

    def test_text_declarations(self):
        node = _node(type='TEXT', characters='Hi', fills=[{'type': 'SOLID', 'color': WHITE}], style={
            'fontFamily': 'Open Sans', 'fontSize': 18, 'fontWeight': 600, 'italic': True,
            'lineHeightPx': 24, 'letterSpacing': 0.5, 'textAlignHorizontal': 'CENTER',
            'textAlignVertical': 'BOTTOM', 'textDecoration': 'UNDERLINE', 'textCase': 'UPPER',
        })
        css = compute_style(node).as_css()
        assert css['font-family'].startswith('"Open Sans", system-ui')
        assert css['font-size'] == '18px'
        assert css['font-weight'] == '600'
        assert css['font-style'] == 'italic'
        assert css['line-height'] == '24px'
        assert css['letter-spacing'] == '0.5px'
        assert css['text-align'] == 'center'
        assert css['justify-content'] == 'flex-end'
        assert css['text-decoration'] == 'underline'
        assert css['text-transform'] == 'uppercase'
        assert css['color'] == '#ffffff'


class TestComputedStyle:
    """CSS and React views."""

    def test_as_css_and_as_react(self):
        style = ComputedStyle(position='absolute', left=10, z_index=3, background_color='#fff', opacity=0.5)
        assert style.as_css() == {
            'position': 'absolute', 'left': '10px', 'z-index': '3',
            'background-color': '#fff', 'opacity': '0.5',
        }
        assert style.as_react()['backgroundColor'] == '#fff'
        assert style.as_react()['zIndex'] == '3'

    def test_later_fragments_win(self):
        style = ComputedStyle.from_fragments({'display': 'block'}, {'display': 'flex'})
        assert style.display == 'flex'

    def test_no_warnings_for_known_variants(self, shadowed_rect, radial_rect, dashed_rect):
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            for raw in (shadowed_rect, radial_rect, dashed_rect):
                resolve_style(parse_node(raw))
