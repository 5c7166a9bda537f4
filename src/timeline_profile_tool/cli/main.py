"""
CLI主模块
"""

import argparse
import logging
import sys

from ..config import DEFAULT_FRAME_BUDGET_MICROS, KEY_STRATEGIES
from .commands import FramesCommand, ProfileCommand


def parse_arguments(argv=None):
    """解析命令行参数"""
    parser = argparse.ArgumentParser(
        description="Timeline Profile Tool - 从 timeline 导出文件重建渲染帧和 CPU profile 调用树",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例用法:
  # 从 thread_name metadata 自动识别 UI / raster 线程，重建帧
  timeline-profile-tool frames timeline.json

  # 显式指定线程 id，帧预算 8ms (120fps)，输出 json 和 xlsx
  timeline-profile-tool frames timeline.json --ui-tid 775 --raster-tid 1031 --budget-ms 8 --output-format json,xlsx

  # 允许每个 track 内 64 个事件的乱序
  timeline-profile-tool frames timeline.json --look-back 64

  # 打印 CPU profile 调用树 (前 4 层)
  timeline-profile-tool profile timeline.json --max-depth 4
        """
    )
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='日志级别 (默认: WARNING)')

    subparsers = parser.add_subparsers(dest='command', help='可用命令')

    # frames 命令
    frames_parser = subparsers.add_parser('frames', help='从 trace 事件重建渲染帧')
    frames_parser.add_argument('file', help='timeline JSON 文件 (支持 .json.gz)')
    frames_parser.add_argument('--ui-tid', default=None, help='UI 线程 id (默认: 从 thread_name 自动识别)')
    frames_parser.add_argument('--raster-tid', default=None, help='raster 线程 id (默认: 从 thread_name 自动识别)')
    frames_parser.add_argument('--budget-ms', type=float, default=DEFAULT_FRAME_BUDGET_MICROS / 1000.0,
                               help='帧预算，超过即视为 jank (默认: 16.666 ms)')
    frames_parser.add_argument('--capacity', type=int, default=32,
                               help='最多保留的未完成帧数量 (默认: 32)')
    frames_parser.add_argument('--stale-limit', type=int, default=8,
                               help='之后又完成了多少帧仍未完成的帧会被丢弃 (默认: 8)')
    frames_parser.add_argument('--look-back', type=int, default=0,
                               help='每个 track 的乱序容忍窗口 (事件数，默认: 0)')
    frames_parser.add_argument('--key-strategy', default='composite', choices=list(KEY_STRATEGIES),
                               help='帧配对策略 (默认: composite)')
    frames_parser.add_argument('--print-markdown', action='store_true',
                               help='是否在stdout中以markdown格式打印统计表格 (默认: False)')
    frames_parser.add_argument('--output-format', default='',
                               help='输出格式，逗号分隔: json, xlsx (默认: 不输出文件)')
    frames_parser.add_argument('--output-dir', default='.', help='输出目录 (默认: 当前目录)')

    # profile 命令
    profile_parser = subparsers.add_parser('profile', help='构建 CPU profile 调用树')
    profile_parser.add_argument('file', help='timeline 导出文件或 CPU profile 响应 JSON 文件')
    profile_parser.add_argument('--max-depth', type=int, default=10, help='最大显示深度 (默认: 10)')
    profile_parser.add_argument('--output-format', default='',
                                help='输出格式，逗号分隔: json, xlsx (默认: 不输出文件)')
    profile_parser.add_argument('--output-dir', default='.', help='输出目录 (默认: 当前目录)')

    return parser.parse_args(argv)


def main(argv=None):
    """主函数"""
    args = parse_arguments(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if not args.command:
        print("错误: 请指定命令 (frames, profile)")
        print("使用 --help 查看帮助信息")
        return 1

    if args.command == 'frames':
        command = FramesCommand()
        return command.run(args)
    elif args.command == 'profile':
        command = ProfileCommand()
        return command.run(args)
    else:
        print(f"错误: 未知命令: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
