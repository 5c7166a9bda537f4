"""
命令行单元测试
"""

import contextlib
import io
import json
import os
import tempfile
import unittest

from timeline_profile_tool.cli.file_utils import output_base_name, validate_input_file
from timeline_profile_tool.cli.main import main, parse_arguments
from timeline_profile_tool.cli.validators import (
    build_timeline_config,
    parse_output_formats,
    parse_thread_id,
)
from timeline_profile_tool.models import TrackKind


def trace_document():
    events = []
    for number, start in ((1, 0), (2, 16000)):
        events += [
            {'ph': 'B', 'name': 'VSYNC', 'cat': 'Embedder', 'tid': 775, 'pid': 1, 'ts': start,
             'args': {'frame_number': number}},
            {'ph': 'E', 'name': 'VSYNC', 'cat': 'Embedder', 'tid': 775, 'pid': 1, 'ts': start + 5000},
            {'ph': 'X', 'name': 'GPURasterizer::Draw', 'cat': 'Embedder', 'tid': 1031, 'pid': 1,
             'ts': start + 6000, 'dur': 4000, 'args': {'frame_number': number}},
        ]
    return {
        'traceEvents': events,
        'cpuProfile': {
            'sampleCount': 2,
            'samplePeriod': 1000,
            'stackFrames': {
                '1': {'name': 'main', 'category': 'Dart'},
                '2': {'name': 'build', 'category': 'Dart', 'parent': '1'},
            },
            'traceEvents': [{'sf': '2'}, {'sf': '1'}],
        },
    }


class TestValidators(unittest.TestCase):
    def test_parse_output_formats(self):
        self.assertEqual(parse_output_formats(''), [])
        self.assertEqual(parse_output_formats('json, xlsx'), ['json', 'xlsx'])
        with self.assertRaises(ValueError):
            parse_output_formats('csv')
        with self.assertRaises(ValueError):
            parse_output_formats('json,json')

    def test_parse_thread_id(self):
        self.assertEqual(parse_thread_id('775'), 775)
        self.assertEqual(parse_thread_id('io.flutter.ui'), 'io.flutter.ui')
        self.assertIsNone(parse_thread_id(None))

    def test_build_timeline_config(self):
        args = parse_arguments(['frames', 'trace.json', '--ui-tid', '775', '--raster-tid', '1031',
                                '--budget-ms', '8', '--look-back', '16'])
        config = build_timeline_config(args)
        self.assertEqual(config.track_ids, {775: TrackKind.UI, 1031: TrackKind.RASTER})
        self.assertEqual(config.frame_budget_micros, 8000)
        self.assertEqual(config.look_back_window, 16)

    def test_invalid_config(self):
        args = parse_arguments(['frames', 'trace.json', '--ui-tid', '1', '--raster-tid', '1'])
        with self.assertRaises(ValueError):
            build_timeline_config(args)
        args = parse_arguments(['frames', 'trace.json', '--budget-ms', '0'])
        with self.assertRaises(ValueError):
            build_timeline_config(args)
        args = parse_arguments(['frames', 'trace.json', '--capacity', '0'])
        with self.assertRaises(ValueError):
            build_timeline_config(args)


class TestMain(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.trace_file = os.path.join(self.temp_dir.name, 'timeline.json')
        with open(self.trace_file, 'w', encoding='utf-8') as f:
            json.dump(trace_document(), f)

    def tearDown(self):
        self.temp_dir.cleanup()

    def run_main(self, argv):
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            code = main(argv)
        return code, output.getvalue()

    def test_no_command(self):
        code, output = self.run_main([])
        self.assertEqual(code, 1)
        self.assertIn('请指定命令', output)

    def test_file_utils(self):
        path = validate_input_file(self.trace_file)
        self.assertEqual(output_base_name(path, 'frames'), 'timeline_frames')
        with self.assertRaises(ValueError):
            validate_input_file(os.path.join(self.temp_dir.name, 'missing.json'))

    def test_frames_command(self):
        code, output = self.run_main([
            'frames', self.trace_file, '--ui-tid', '775', '--raster-tid', '1031',
            '--print-markdown', '--output-format', 'json', '--output-dir', self.temp_dir.name,
        ])
        self.assertEqual(code, 0)
        self.assertIn('完成 2 帧', output)
        self.assertIn('| track |', output)
        with open(os.path.join(self.temp_dir.name, 'timeline_frames.json'), encoding='utf-8') as f:
            rows = json.load(f)
        self.assertEqual([row['frame_id'] for row in rows], [1, 2])
        self.assertEqual(rows[0]['ui_ms'], 5.0)
        self.assertEqual(rows[0]['raster_ms'], 4.0)

    def test_frames_command_bad_format(self):
        code, output = self.run_main(['frames', self.trace_file, '--output-format', 'csv'])
        self.assertEqual(code, 1)
        self.assertIn('不支持的输出格式', output)

    def test_profile_command(self):
        code, output = self.run_main(['profile', self.trace_file, '--output-format', 'json',
                                      '--output-dir', self.temp_dir.name])
        self.assertEqual(code, 0)
        self.assertIn('采样数: 2', output)
        self.assertIn('main - 2.00 ms (2 samples, 100.00%)', output)
        with open(os.path.join(self.temp_dir.name, 'timeline_cpu_profile.json'), encoding='utf-8') as f:
            rows = json.load(f)
        self.assertEqual([row['id'] for row in rows], ['cpuProfile', '1', '2'])

    def test_profile_command_mismatch(self):
        document = trace_document()
        document['cpuProfile']['sampleCount'] = 5
        with open(self.trace_file, 'w', encoding='utf-8') as f:
            json.dump(document, f)
        code, output = self.run_main(['profile', self.trace_file])
        self.assertEqual(code, 1)
        self.assertIn('CPU profile 数据不一致', output)


if __name__ == '__main__':
    unittest.main()
