"""Tests for bitmap flattening decisions."""
from scenegraph.flatten import NO_FLATTEN, decide_flatten, first_image_ref, is_asset_candidate
from scenegraph.nodes import parse_node


def _group(children, **fields):
    raw = {'id': '7:1', 'name': 'G', 'type': 'GROUP', 'children': children}
    raw.update(fields)
    return parse_node(raw)


class TestDecideFlatten:
    """Masks and export settings on GROUPs."""

    def test_masked_group_flattens(self, masked_group):
        decision = decide_flatten(parse_node(masked_group))
        assert decision.flatten
        assert decision.asset_key == '2:1'
        assert decision.fallback_key == 'img-photo'
        assert decision.reason == 'mask'

    def test_deterministic(self, masked_group):
        node = parse_node(masked_group)
        assert decide_flatten(node) == decide_flatten(node)

    def test_text_keeps_group_live(self, masked_group, hello_text):
        masked_group['children'].append(hello_text)
        assert decide_flatten(parse_node(masked_group)) == NO_FLATTEN

    def test_vector_mask_does_not_count(self, masked_group):
        masked_group['children'][0]['maskType'] = 'VECTOR'
        assert not decide_flatten(parse_node(masked_group)).flatten

    def test_luminance_mask_counts(self, masked_group):
        masked_group['children'][0]['maskType'] = 'LUMINANCE'
        assert decide_flatten(parse_node(masked_group)).flatten

    def test_hidden_mask_ignored(self, masked_group):
        masked_group['children'][0]['visible'] = False
        assert not decide_flatten(parse_node(masked_group)).flatten

    def test_export_settings_flatten_even_with_text(self, hello_text):
        node = _group([hello_text], exportSettings=[{'format': 'PNG', 'suffix': ''}])
        decision = decide_flatten(node)
        assert decision.flatten
        assert decision.reason == 'export-settings'
        assert decision.fallback_key is None

    def test_frame_never_flattens(self, masked_group):
        masked_group['type'] = 'FRAME'
        assert decide_flatten(parse_node(masked_group)) == NO_FLATTEN

    def test_plain_group(self, frame_with_child):
        assert not decide_flatten(_group([frame_with_child])).flatten


class TestHelpers:
    def test_first_image_ref_depth_first(self, masked_group):
        nested = _group([
            {'id': '8:1', 'type': 'FRAME', 'children': [
                {'id': '8:2', 'type': 'RECTANGLE', 'fills': [{'type': 'IMAGE', 'imageRef': 'deep'}]},
            ]},
            masked_group,
        ])
        assert first_image_ref(nested) == 'deep'

    def test_asset_candidates(self):
        assert is_asset_candidate(parse_node({'id': '1', 'type': 'VECTOR'}))
        assert is_asset_candidate(parse_node({'id': '1', 'type': 'BOOLEAN_OPERATION'}))
        assert not is_asset_candidate(parse_node({'id': '1', 'type': 'FRAME'}))
        assert not is_asset_candidate(parse_node({'id': '1', 'type': 'TEXT'}))
