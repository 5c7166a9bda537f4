"""
帧分析命令模块
"""

import time
from pathlib import Path

from ..file_utils import validate_input_file, output_base_name
from ..validators import build_timeline_config, parse_output_formats
from ...analyzer import (
    calculate_frame_statistics,
    frame_statistics_to_rows,
    frames_to_rows,
    generate_output_files,
    to_markdown,
)
from ...parser import load_trace_file
from ...timeline import TimelineSession


class FramesCommand:
    """帧分析命令处理器"""

    def run(self, args) -> int:
        """从 trace 文件重建帧并输出统计"""
        print(f"=== 帧分析 ===")
        print(f"文件: {args.file}")
        print(f"帧预算: {args.budget_ms} ms")
        print(f"输出格式: {args.output_format or '无'}")
        print(f"输出目录: {args.output_dir}")
        print()

        try:
            file_path = validate_input_file(args.file)
            config = build_timeline_config(args)
            formats = parse_output_formats(args.output_format)
        except ValueError as e:
            print(f"错误: {e}")
            return 1

        raw_events = load_trace_file(file_path)
        if raw_events is None:
            print(f"错误: 无法读取 trace 事件: {file_path}")
            return 1
        print(f"读取到 {len(raw_events)} 个原始事件")

        start_time = time.time()
        session = TimelineSession(config)
        session.start()
        for raw_event in raw_events:
            session.submit(raw_event)
        session.process_pending()
        frames = session.drain_frames()
        frames += session.flush()
        session.stop()

        print(f"完成 {len(frames)} 帧，pending {len(session.assembler.pending_frames)} 帧，"
              f"丢弃 {session.assembler.evicted_frames} 帧，耗时 {time.time() - start_time:.2f} 秒")
        if session.ignored_events:
            print(f"忽略未跟踪线程的事件: {session.ignored_events}")
        if session.anomalies.counts:
            print(f"异常统计: {session.anomalies.summary()}")

        stats = calculate_frame_statistics(frames)
        print(f"\n{stats}")
        stats_rows = frame_statistics_to_rows(stats)
        if args.print_markdown and stats_rows:
            print(to_markdown(stats_rows))

        if formats:
            base_name = output_base_name(file_path, 'frames')
            generated = generate_output_files(frames_to_rows(frames), args.output_dir, base_name, formats)
            generated += generate_output_files(stats_rows, args.output_dir, f"{base_name}_summary", formats)
            if generated:
                print("\n生成的文件:")
                for path in generated:
                    print(f"  {path}")

        return 0
