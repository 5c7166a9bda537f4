import unittest

from timeline_profile_tool.anomalies import AnomalyKind, AnomalyLog
from timeline_profile_tool.models import TraceEvent
from timeline_profile_tool.timeline.event_tree_builder import EventTreeBuilder, AsyncSpanMatcher


def make_event(phase, name, ts, track='ui', category='Embedder', **kwargs):
    return TraceEvent(phase=phase, name=name, category=category, track=track, timestamp=ts, **kwargs)


class TestEventTreeBuilder(unittest.TestCase):
    def setUp(self):
        self.anomalies = AnomalyLog()
        self.builder = EventTreeBuilder('ui', self.anomalies)
        self.completed = []
        self.builder.add_listener(self.completed.append)

    def feed(self, *events):
        for event in events:
            self.builder.process(event)

    def test_nested_spans(self):
        self.feed(
            make_event('B', 'VSYNC', 0),
            make_event('B', 'Animate', 1),
            make_event('E', 'Animate', 3),
            make_event('B', 'Layout', 4),
            make_event('E', 'Layout', 8),
            make_event('E', 'VSYNC', 10),
        )
        self.assertEqual(len(self.completed), 1)
        root = self.completed[0]
        self.assertEqual(root.name, 'VSYNC')
        self.assertEqual(root.duration, 10)
        self.assertEqual([c.name for c in root.children], ['Animate', 'Layout'])
        for node in root.iter_nodes():
            self.assertTrue(node.is_closed)
            self.assertGreaterEqual(node.end, node.start)
        self.assertEqual(root.children[1].get_call_stack(), ['VSYNC', 'Layout'])
        self.assertEqual(root.children[1].depth, 1)
        self.assertEqual(len(self.anomalies), 0)
        self.assertEqual(self.builder.completed_roots, self.completed)

    def test_unmatched_end_is_dropped(self):
        self.feed(
            make_event('B', 'VSYNC', 0),
            make_event('B', 'Animate', 1),
        )
        self.feed(make_event('E', 'Paint', 2))

        self.assertEqual(self.anomalies.count(AnomalyKind.UNMATCHED_END), 1)
        self.assertEqual([n.name for n in self.builder.open_nodes], ['VSYNC', 'Animate'])
        self.assertEqual(len(self.builder.open_nodes[0].children), 1)
        self.assertTrue(self.builder.open_nodes[1].is_open)
        self.assertEqual(self.completed, [])

    def test_unmatched_end_on_empty_track(self):
        self.feed(make_event('E', 'VSYNC', 5))
        self.assertEqual(self.anomalies.count(AnomalyKind.UNMATCHED_END), 1)
        self.assertEqual(self.completed, [])

    def test_parent_end_forces_close_of_open_children(self):
        self.feed(
            make_event('B', 'VSYNC', 0),
            make_event('B', 'Build', 1),
            make_event('B', 'Layout', 2),
            make_event('E', 'VSYNC', 5),
        )
        self.assertEqual(len(self.completed), 1)
        root = self.completed[0]
        build = root.children[0]
        layout = build.children[0]
        self.assertTrue(build.forced_close)
        self.assertTrue(layout.forced_close)
        self.assertEqual(build.end, 5)
        self.assertEqual(layout.end, 5)
        self.assertEqual(self.anomalies.count(AnomalyKind.FORCED_CLOSE), 2)
        self.assertEqual(self.builder.open_nodes, [])

    def test_unnamed_end_matches_innermost(self):
        self.feed(
            make_event('B', 'VSYNC', 0),
            make_event('B', 'Animate', 1),
            make_event('E', '', 2),
        )
        self.assertEqual([n.name for n in self.builder.open_nodes], ['VSYNC'])
        self.assertEqual(self.builder.open_nodes[0].children[0].end, 2)

    def test_complete_events(self):
        self.feed(make_event('X', 'Raster', 0, duration=4))
        self.assertEqual(len(self.completed), 1)
        self.assertEqual(self.completed[0].end, 4)

        self.feed(
            make_event('B', 'VSYNC', 10),
            make_event('X', 'Layout', 11, duration=2),
            make_event('E', 'VSYNC', 20),
        )
        self.assertEqual(len(self.completed), 2)
        self.assertEqual(self.completed[1].children[0].duration, 2)

    def test_instant_events(self):
        self.feed(make_event('i', 'Marker', 0))
        self.assertEqual(self.completed, [])

        self.feed(
            make_event('B', 'VSYNC', 1),
            make_event('i', 'Marker', 2),
            make_event('E', 'VSYNC', 3),
        )
        marker = self.completed[0].children[0]
        self.assertEqual(marker.name, 'Marker')
        self.assertEqual(marker.duration, 0)

    def test_negative_duration_is_clamped(self):
        self.feed(
            make_event('B', 'VSYNC', 10),
            make_event('E', 'VSYNC', 5),
        )
        root = self.completed[0]
        self.assertEqual(root.end, 10)
        self.assertEqual(self.anomalies.count(AnomalyKind.NEGATIVE_DURATION), 1)

    def test_child_out_of_range_is_flagged(self):
        self.feed(
            make_event('B', 'VSYNC', 0),
            make_event('X', 'Layout', 5, duration=20),
            make_event('E', 'VSYNC', 10),
        )
        root = self.completed[0]
        self.assertEqual(len(root.children), 1)
        self.assertTrue(root.children[0].out_of_range)
        self.assertEqual(self.anomalies.count(AnomalyKind.CHILD_OUT_OF_RANGE), 1)

    def test_end_args_are_merged(self):
        self.feed(
            make_event('B', 'VSYNC', 0, args={'frame_number': 1}),
            make_event('E', 'VSYNC', 3, args={'status': 'ok'}),
        )
        self.assertEqual(self.completed[0].args, {'frame_number': 1, 'status': 'ok'})

    def test_reset(self):
        self.feed(make_event('B', 'VSYNC', 0))
        self.builder.reset()
        self.assertEqual(self.builder.open_nodes, [])
        self.assertEqual(self.builder.completed_roots, [])

    def test_roots_not_retained_when_disabled(self):
        builder = EventTreeBuilder('ui', self.anomalies, retain_roots=False)
        delivered = []
        builder.add_listener(delivered.append)
        builder.process(make_event('B', 'VSYNC', 0))
        builder.process(make_event('E', 'VSYNC', 5))
        self.assertEqual([n.name for n in delivered], ['VSYNC'])
        self.assertEqual(builder.completed_roots, [])


class TestAsyncSpanMatcher(unittest.TestCase):
    def setUp(self):
        self.anomalies = AnomalyLog()
        self.matcher = AsyncSpanMatcher(self.anomalies)
        self.spans = []
        self.matcher.add_listener(self.spans.append)

    def test_match_by_id(self):
        self.matcher.process(make_event('b', 'PipelineItem', 0, id='1'))
        self.matcher.process(make_event('b', 'PipelineItem', 2, id='2'))
        self.matcher.process(make_event('e', 'PipelineItem', 10, id='1'))
        self.assertEqual(len(self.spans), 1)
        self.assertEqual(self.spans[0].start, 0)
        self.assertEqual(self.spans[0].end, 10)
        self.assertIn(('Embedder', 'PipelineItem', '2'), self.matcher.open_spans)

    def test_unmatched_async_end(self):
        self.matcher.process(make_event('e', 'PipelineItem', 10, id='9'))
        self.assertEqual(self.spans, [])
        self.assertEqual(self.anomalies.count(AnomalyKind.UNMATCHED_END), 1)


if __name__ == '__main__':
    unittest.main()
