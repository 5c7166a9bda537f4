"""
Timeline 会话单元测试
"""

import unittest

from timeline_profile_tool.anomalies import AnomalyKind
from timeline_profile_tool.config import TimelineConfig
from timeline_profile_tool.timeline.session import TimelineSession, SessionState

UI_TID = 775
RASTER_TID = 1031


def raw(ph, name, tid, ts, **args):
    event = {'ph': ph, 'name': name, 'cat': 'Embedder', 'tid': tid, 'pid': 1, 'ts': ts}
    if args:
        event['args'] = args
    return event


def frame_events(number, start):
    """一帧的 UI / raster 事件"""
    return [
        raw('B', 'VSYNC', UI_TID, start, frame_number=number),
        raw('B', 'Animate', UI_TID, start + 1),
        raw('E', 'Animate', UI_TID, start + 2),
        raw('E', 'VSYNC', UI_TID, start + 5),
        raw('B', 'GPURasterizer::Draw', RASTER_TID, start + 6, frame_number=number),
        raw('E', 'GPURasterizer::Draw', RASTER_TID, start + 12),
    ]


class TestTimelineSession(unittest.TestCase):
    def setUp(self):
        self.config = TimelineConfig(track_ids={UI_TID: 'ui', RASTER_TID: 'raster'})
        self.session = TimelineSession(self.config)

    def test_frames_from_event_stream(self):
        events = frame_events(1, 0) + frame_events(2, 16000)
        frames = self.session.process_events(events)
        self.assertEqual([f.id for f in frames], [1, 2])
        first = frames[0]
        self.assertEqual(first.track_duration('ui'), 5)
        self.assertEqual(first.track_duration('raster'), 6)
        self.assertEqual([c.name for c in first.ui_event_flow.children], ['Animate'])
        self.assertEqual(self.session.processed_events, 12)
        self.assertEqual(len(self.session.anomalies), 0)

    def test_interleaved_tracks(self):
        events = [
            raw('B', 'VSYNC', UI_TID, 0, frame_number=1),
            raw('B', 'GPURasterizer::Draw', RASTER_TID, 1, frame_number=0),
            raw('E', 'VSYNC', UI_TID, 5),
            raw('E', 'GPURasterizer::Draw', RASTER_TID, 6),
            raw('B', 'GPURasterizer::Draw', RASTER_TID, 7, frame_number=1),
            raw('E', 'GPURasterizer::Draw', RASTER_TID, 12),
        ]
        frames = self.session.process_events(events)
        self.assertEqual([f.id for f in frames], [1])
        self.assertIn(0, self.session.assembler.pending_frames)

    def test_thread_name_metadata_registers_tracks(self):
        session = TimelineSession(TimelineConfig())
        events = [
            {'ph': 'M', 'name': 'thread_name', 'tid': UI_TID, 'ts': 0, 'args': {'name': 'io.flutter.1.ui'}},
            {'ph': 'M', 'name': 'thread_name', 'tid': RASTER_TID, 'ts': 0, 'args': {'name': 'io.flutter.1.raster'}},
        ] + frame_events(1, 0)
        frames = session.process_events(events)
        self.assertEqual(len(frames), 1)
        self.assertEqual(session.track_ids, {UI_TID: 'ui', RASTER_TID: 'raster'})

    def test_bad_event_does_not_stop_processing(self):
        events = ['garbage', {'ph': 'B'}] + frame_events(1, 0)
        frames = self.session.process_events(events)
        self.assertEqual(len(frames), 1)
        self.assertEqual(self.session.anomalies.count(AnomalyKind.MALFORMED_EVENT), 2)

    def test_untracked_threads_are_ignored(self):
        self.session.process_events([raw('B', 'Read', 9, 0), raw('E', 'Read', 9, 1)])
        self.assertEqual(self.session.ignored_events, 2)
        self.assertEqual(self.session.frames, [])

    def test_unmatched_end_is_recorded(self):
        self.session.process_events([raw('E', 'VSYNC', UI_TID, 0)] + frame_events(1, 10))
        self.assertEqual(self.session.anomalies.count(AnomalyKind.UNMATCHED_END), 1)
        self.assertEqual(len(self.session.frames), 1)

    def test_submit_is_fifo(self):
        self.session.start()
        for event in frame_events(1, 0):
            self.assertTrue(self.session.submit(event))
        self.assertEqual(len(self.session.inbound), 6)
        self.assertEqual(self.session.process_pending(), 6)
        self.assertEqual(len(self.session.drain_frames()), 1)
        self.assertEqual(self.session.drain_frames(), [])

    def test_stop_keeps_pending_frames(self):
        self.session.process_events(frame_events(1, 0)[:4])
        self.assertEqual(len(self.session.assembler.pending_frames), 1)
        self.session.stop()
        self.assertFalse(self.session.submit(frame_events(1, 0)[4]))
        self.assertEqual(len(self.session.assembler.pending_frames), 1)
        self.assertEqual(self.session.frames, [])

    def test_connection_lost_freezes_until_reset(self):
        self.session.start()
        self.session.submit(frame_events(1, 0)[0])
        self.session.connection_lost()
        self.assertEqual(self.session.state, SessionState.DISCONNECTED)
        self.assertEqual(len(self.session.inbound), 0)
        self.assertFalse(self.session.submit(frame_events(1, 0)[1]))
        with self.assertRaises(RuntimeError):
            self.session.start()

        self.session.reset()
        self.assertEqual(self.session.state, SessionState.IDLE)
        frames = self.session.process_events(frame_events(1, 0))
        self.assertEqual(len(frames), 1)

    def test_connection_lost_processes_received_events(self):
        self.session.start()
        for event in frame_events(1, 0):
            self.session.submit(event)
        self.session.connection_lost()
        self.assertEqual(self.session.processed_events, 6)
        self.assertEqual(len(self.session.drain_frames()), 1)

    def test_flush_after_connection_lost_keeps_state_frozen(self):
        session = TimelineSession(TimelineConfig(
            track_ids={UI_TID: 'ui', RASTER_TID: 'raster'}, look_back_window=4))
        session.process_events([
            raw('B', 'VSYNC', UI_TID, 0, frame_number=1),
            raw('E', 'VSYNC', UI_TID, 5),
            raw('B', 'GPURasterizer::Draw', RASTER_TID, 6, frame_number=1),
            raw('E', 'GPURasterizer::Draw', RASTER_TID, 12),
        ])
        session.connection_lost()
        self.assertEqual(session.flush(), [])
        self.assertEqual(session.process_pending(), 0)
        self.assertEqual(len(session.heaps['ui']), 2)
        self.assertEqual(session.frames, [])

    def test_drained_frames_are_released(self):
        session = TimelineSession(TimelineConfig(
            track_ids={UI_TID: 'ui', RASTER_TID: 'raster'}, frame_history=4))
        session.start()
        for number in range(10):
            for event in frame_events(number, number * 16000):
                session.submit(event)
        session.process_pending()
        self.assertEqual(len(session.drain_frames()), 10)
        self.assertEqual(session.drain_frames(), [])
        self.assertEqual([f.id for f in session.frames], [6, 7, 8, 9])
        for builder in session.builders.values():
            self.assertEqual(builder.completed_roots, [])

    def test_complete_events_written_at_end_without_look_back(self):
        self.session.process_events([
            {'ph': 'X', 'name': 'Build', 'cat': 'Embedder', 'tid': UI_TID, 'ts': 2, 'dur': 1},
            {'ph': 'X', 'name': 'VSYNC', 'cat': 'Embedder', 'tid': UI_TID, 'ts': 0, 'dur': 5},
        ])
        self.assertEqual(self.session.anomalies.count(AnomalyKind.LATE_EVENT), 0)
        self.assertEqual(self.session.processed_events, 2)

    def test_look_back_window_reorders_events(self):
        session = TimelineSession(TimelineConfig(
            track_ids={UI_TID: 'ui', RASTER_TID: 'raster'}, look_back_window=4))
        events = [
            raw('E', 'VSYNC', UI_TID, 5),
            raw('B', 'VSYNC', UI_TID, 0, frame_number=1),
            raw('B', 'GPURasterizer::Draw', RASTER_TID, 6, frame_number=1),
            raw('E', 'GPURasterizer::Draw', RASTER_TID, 12),
        ]
        self.assertEqual(session.process_events(events), [])
        self.assertIn('ui heap', session.format_status())
        frames = session.flush()
        self.assertEqual(len(frames), 1)
        self.assertEqual(frames[0].track_duration('ui'), 5)
        self.assertEqual(len(session.anomalies), 0)

    def test_late_event_is_dropped(self):
        session = TimelineSession(TimelineConfig(
            track_ids={UI_TID: 'ui', RASTER_TID: 'raster'}, look_back_window=1))
        session.process_events([
            raw('B', 'VSYNC', UI_TID, 10),
            raw('E', 'VSYNC', UI_TID, 20),
            raw('B', 'Late', UI_TID, 5),
        ])
        self.assertEqual(session.anomalies.count(AnomalyKind.LATE_EVENT), 1)

    def test_pipeline_spans_from_async_events(self):
        events = [
            {'ph': 'b', 'name': 'PipelineItem', 'cat': 'Embedder', 'tid': UI_TID, 'ts': 0, 'id': '0x1',
             'args': {'frame_number': 1}},
        ] + frame_events(1, 1) + [
            {'ph': 'e', 'name': 'PipelineItem', 'cat': 'Embedder', 'tid': RASTER_TID, 'ts': 20, 'id': '0x1'},
        ]
        frames = self.session.process_events(events)
        self.assertEqual(len(frames), 1)
        # pipeline span 在帧完成后才结束，不影响已完成的帧
        self.assertIsNone(frames[0].pipeline_span)
        self.assertEqual(frames[0].start, 1)

    def test_format_status(self):
        self.session.process_events(frame_events(1, 0)[:2])
        status = self.session.format_status()
        self.assertIn('Pending frames: 0', status)
        self.assertIn('Current ui event node:', status)

    def test_invalid_config(self):
        with self.assertRaises(ValueError):
            TimelineSession(TimelineConfig(pending_frame_capacity=0))
        with self.assertRaises(ValueError):
            TimelineSession(TimelineConfig(track_ids={1: 'io'}))


if __name__ == '__main__':
    unittest.main()
