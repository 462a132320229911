"""Shared raw design-node fixtures for scene-graph tests."""
import pytest

BLACK = {'r': 0, 'g': 0, 'b': 0, 'a': 1}
WHITE = {'r': 1, 'g': 1, 'b': 1, 'a': 1}
RED = {'r': 1, 'g': 0, 'b': 0, 'a': 1}
BLUE = {'r': 0, 'g': 0, 'b': 1, 'a': 1}


def solid(color, opacity=1, visible=True):
    return {'type': 'SOLID', 'visible': visible, 'color': color, 'opacity': opacity}


def box(x, y, width, height):
    return {'x': x, 'y': y, 'width': width, 'height': height}


@pytest.fixture
def dashed_rect():
    """RECTANGLE with a dashed 2px inside stroke."""
    return {
        'id': '1:10',
        'name': 'Dashed',
        'type': 'RECTANGLE',
        'absoluteBoundingBox': box(0, 0, 200, 100),
        'fills': [solid(RED)],
        'strokes': [solid(BLACK)],
        'strokeWeight': 2,
        'strokeAlign': 'INSIDE',
        'strokeDashes': [5, 3],
    }


@pytest.fixture
def per_side_stroke_rect():
    """RECTANGLE with different stroke widths per side."""
    return {
        'id': '1:11',
        'name': 'Sides',
        'type': 'RECTANGLE',
        'absoluteBoundingBox': box(0, 0, 200, 100),
        'strokes': [solid(BLACK)],
        'strokeWeight': 1,
        'strokeTopWeight': 2,
        'strokeRightWeight': 0,
        'strokeBottomWeight': 4,
        'strokeLeftWeight': 0,
    }


@pytest.fixture
def shadowed_rect():
    """RECTANGLE with drop shadow, inner shadow and background blur."""
    return {
        'id': '1:12',
        'name': 'Card',
        'type': 'RECTANGLE',
        'absoluteBoundingBox': box(0, 0, 120, 80),
        'fills': [solid(RED)],
        'effects': [
            {'type': 'DROP_SHADOW', 'visible': True, 'radius': 8,
             'color': {'r': 0, 'g': 0, 'b': 0, 'a': 0.25}, 'offset': {'x': 0, 'y': 4}},
            {'type': 'INNER_SHADOW', 'visible': True, 'radius': 4, 'spread': 1,
             'color': {'r': 0, 'g': 0, 'b': 0, 'a': 0.5}, 'offset': {'x': 0, 'y': 2}},
            {'type': 'BACKGROUND_BLUR', 'visible': True, 'radius': 10},
        ],
    }


@pytest.fixture
def radial_rect():
    """RECTANGLE with a radial gradient centered at (25%, 50%)."""
    return {
        'id': '1:13',
        'name': 'Glow',
        'type': 'RECTANGLE',
        'absoluteBoundingBox': box(0, 0, 300, 150),
        'fills': [{
            'type': 'GRADIENT_RADIAL', 'visible': True, 'opacity': 1,
            'gradientStops': [
                {'color': RED, 'position': 0},
                {'color': BLUE, 'position': 1},
            ],
            'gradientHandlePositions': [{'x': 0.25, 'y': 0.5}, {'x': 1, 'y': 0.5}, {'x': 0.25, 'y': 1}],
        }],
    }


@pytest.fixture
def masked_group():
    """GROUP whose ELLIPSE child is an alpha mask over an image."""
    return {
        'id': '2:1',
        'name': 'Avatar',
        'type': 'GROUP',
        'absoluteBoundingBox': box(10, 10, 64, 64),
        'children': [
            {
                'id': '2:2', 'name': 'Mask', 'type': 'ELLIPSE',
                'isMask': True, 'maskType': 'ALPHA',
                'absoluteBoundingBox': box(10, 10, 64, 64),
                'fills': [solid(BLACK)],
            },
            {
                'id': '2:3', 'name': 'Photo', 'type': 'RECTANGLE',
                'absoluteBoundingBox': box(10, 10, 64, 64),
                'fills': [{'type': 'IMAGE', 'visible': True, 'imageRef': 'img-photo', 'scaleMode': 'FILL'}],
            },
        ],
    }


@pytest.fixture
def hello_text():
    """TEXT "Hello" with the first two characters bold."""
    return {
        'id': '3:1',
        'name': 'Greeting',
        'type': 'TEXT',
        'absoluteBoundingBox': box(0, 0, 100, 24),
        'characters': 'Hello',
        'fills': [solid(BLACK)],
        'style': {'fontFamily': 'Inter', 'fontSize': 16, 'fontWeight': 400},
        'characterStyleOverrides': [1, 1, 0, 0, 0],
        'styleOverrideTable': {'1': {'fontWeight': 700}},
    }


@pytest.fixture
def corner_rect():
    """RECTANGLE with one explicit corner over a uniform radius."""
    return {
        'id': '4:1',
        'name': 'Tab',
        'type': 'RECTANGLE',
        'absoluteBoundingBox': box(0, 0, 80, 40),
        'cornerRadius': 4,
        'cornerRadiusTopLeft': 8,
    }


@pytest.fixture
def frame_with_child():
    """FRAME at (100, 50) holding a RECTANGLE at (110, 60)."""
    return {
        'id': '5:1',
        'name': 'Panel',
        'type': 'FRAME',
        'absoluteBoundingBox': box(100, 50, 500, 300),
        'fills': [solid(BLUE)],
        'children': [
            {
                'id': '5:2', 'name': 'Chip', 'type': 'RECTANGLE',
                'absoluteBoundingBox': box(110, 60, 50, 20),
                'fills': [solid(RED)],
            },
        ],
    }


@pytest.fixture
def auto_layout_frame():
    """Horizontal auto-layout FRAME with a growing child and an absolute badge."""
    return {
        'id': '6:1',
        'name': 'Toolbar',
        'type': 'FRAME',
        'absoluteBoundingBox': box(0, 0, 400, 48),
        'layoutMode': 'HORIZONTAL',
        'itemSpacing': 8,
        'paddingTop': 4,
        'paddingRight': 12,
        'paddingBottom': 4,
        'paddingLeft': 12,
        'primaryAxisAlignItems': 'SPACE_BETWEEN',
        'counterAxisAlignItems': 'CENTER',
        'layoutWrap': 'WRAP',
        'children': [
            {
                'id': '6:2', 'name': 'Search', 'type': 'RECTANGLE',
                'absoluteBoundingBox': box(12, 4, 200, 40),
                'layoutGrow': 1, 'layoutAlign': 'STRETCH',
            },
            {
                'id': '6:3', 'name': 'Badge', 'type': 'ELLIPSE',
                'absoluteBoundingBox': box(390, 0, 10, 10),
                'layoutPositioning': 'ABSOLUTE',
            },
        ],
    }


@pytest.fixture
def page_tree(masked_group, hello_text, frame_with_child):
    """CANVAS holding a frame, a masked group, a text and a hidden node."""
    return {
        'id': '0:1',
        'name': 'Page 1',
        'type': 'CANVAS',
        'children': [
            frame_with_child,
            masked_group,
            hello_text,
            {
                'id': '9:9', 'name': 'Hidden', 'type': 'RECTANGLE', 'visible': False,
                'absoluteBoundingBox': box(0, 0, 10, 10),
                'fills': [{'type': 'IMAGE', 'imageRef': 'img-hidden'}],
            },
        ],
    }
