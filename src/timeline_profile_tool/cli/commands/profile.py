"""
CPU profile 分析命令模块
"""

from ..file_utils import validate_input_file, output_base_name
from ..validators import parse_output_formats
from ...analyzer import cpu_profile_to_rows, generate_output_files
from ...cpu_profile import CpuProfileData, ProfileConstructionError
from ...parser import load_cpu_profile_response
from ...utils.tree_utils import format_tree, get_tree_depth


class ProfileCommand:
    """CPU profile 命令处理器"""

    def run(self, args) -> int:
        """构建 CPU profile 调用树并输出"""
        print(f"=== CPU Profile 分析 ===")
        print(f"文件: {args.file}")
        print(f"最大显示深度: {args.max_depth}")
        print()

        try:
            file_path = validate_input_file(args.file)
            formats = parse_output_formats(args.output_format)
        except ValueError as e:
            print(f"错误: {e}")
            return 1

        response = load_cpu_profile_response(file_path)
        if response is None:
            print(f"错误: 无法读取 CPU profile: {file_path}")
            return 1

        try:
            profile = CpuProfileData(response)
        except ProfileConstructionError as e:
            print(f"错误: CPU profile 数据不一致 - {e}")
            return 1

        root = profile.cpu_profile_root
        print(f"采样数: {profile.sample_count}，采样周期: {profile.sample_period} us")
        print(f"栈帧数: {len(profile.stack_frames)}，调用树深度: {get_tree_depth(root)}")
        print()
        print(format_tree(
            root,
            lambda frame: frame.to_display_string(profile.sample_duration_micros(frame)),
            max_depth=args.max_depth,
        ))

        if formats:
            rows = cpu_profile_to_rows(profile, max_depth=args.max_depth)
            generated = generate_output_files(rows, args.output_dir, output_base_name(file_path, 'cpu_profile'), formats)
            if generated:
                print("\n生成的文件:")
                for path in generated:
                    print(f"  {path}")

        return 0
