"""时间线命令模型与 JSON 编解码。

每个命令都是一次离散的、可逆的（RESET 除外）轨道/片段集合变更，
通过 type 字段区分，序列化格式与前端保持一致：
{"type": "UPDATE_CLIP", "before": {...}, "after": {...}}
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from src.domain.models.timeline import Clip, Track


class CommandModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class AddTrack(CommandModel):
    type: Literal["ADD_TRACK"] = "ADD_TRACK"
    track: Track


class RemoveTrack(CommandModel):
    """删除轨道并级联删除其片段。

    affected_clips 只是记录，逆命令不会重放它们。
    """

    type: Literal["REMOVE_TRACK"] = "REMOVE_TRACK"
    track: Track
    affected_clips: tuple[Clip, ...] = ()


class UpdateTrack(CommandModel):
    type: Literal["UPDATE_TRACK"] = "UPDATE_TRACK"
    before: Track
    after: Track


class AddClip(CommandModel):
    type: Literal["ADD_CLIP"] = "ADD_CLIP"
    clip: Clip


class RemoveClip(CommandModel):
    type: Literal["REMOVE_CLIP"] = "REMOVE_CLIP"
    clip: Clip


class UpdateClip(CommandModel):
    type: Literal["UPDATE_CLIP"] = "UPDATE_CLIP"
    before: Clip
    after: Clip


class Reset(CommandModel):
    """整体替换集合，不可逆的检查点。"""

    type: Literal["RESET"] = "RESET"
    tracks: tuple[Track, ...] = ()
    clips: tuple[Clip, ...] = ()


class Batch(CommandModel):
    """按顺序依次应用的一组命令，作为一个撤销单元。"""

    type: Literal["BATCH"] = "BATCH"
    commands: tuple[Command, ...] = ()


Command = Annotated[
    Union[AddTrack, RemoveTrack, UpdateTrack, AddClip, RemoveClip, UpdateClip, Reset, Batch],
    Field(discriminator="type"),
]

Batch.model_rebuild()

_command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def parse_command(data: dict[str, Any] | str | bytes) -> Command:
    """从 dict 或 JSON 文本解析命令（接受 camelCase 与 snake_case 字段）。"""
    if isinstance(data, (str, bytes)):
        return _command_adapter.validate_json(data)
    return _command_adapter.validate_python(data)


def dump_command(command: Command) -> dict[str, Any]:
    """序列化为 camelCase JSON 兼容的 dict。"""
    return _command_adapter.dump_python(command, mode="json", by_alias=True)
