#!/usr/bin/env python
"""把 JSON 命令日志重放到空时间线上，打印最终的轨道与片段。

用法:
    python scripts/dev/replay_commands.py commands.json
    python scripts/dev/replay_commands.py commands.json --undo 2

命令日志是一个 JSON 数组，元素格式与前端命令一致，例如
{"type": "ADD_TRACK", "track": {...}}。
"""

import argparse
import json
import sys
from pathlib import Path

# 添加项目根目录到 Python 路径
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import structlog

from src.domain.models.commands import parse_command
from src.infra.observability.otel import configure_logging
from src.timeline.history import HistoryManager

logger = structlog.get_logger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="重放时间线命令日志")
    parser.add_argument("path", type=Path, help="命令日志 JSON 文件")
    parser.add_argument("--undo", type=int, default=0, help="重放后再撤销的步数")
    args = parser.parse_args()

    configure_logging()

    payload = json.loads(args.path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        print("❌ 命令日志必须是 JSON 数组")
        return 1

    history = HistoryManager()
    for position, raw in enumerate(payload):
        command = parse_command(raw)
        history.execute(command)
        logger.info("replay_commands.applied", position=position, command_type=command.type)

    for _ in range(args.undo):
        history.undo()

    present = history.present
    print("=" * 60)
    print(f"轨道 {len(present.tracks)} 条，片段 {len(present.clips)} 个")
    print(f"可撤销: {history.can_undo}  可重做: {history.can_redo}")
    print("=" * 60)
    for track in present.ordered_tracks():
        print(f"[{track.index}] {track.type.value:<8} {track.id}")
        for clip in present.clips_on_track(track.id):
            print(
                f"    {clip.timeline_start_ms:>8} - {clip.timeline_end_ms:<8} "
                f"{clip.type.value:<7} {clip.id}"
            )
    return 0


if __name__ == "__main__":
    sys.exit(main())
