"""Identity-addressed structural operations over the two-level workout tree.

Every operation takes a tuple of items and returns a new tuple; the input is
never modified. When an operation cannot apply (unknown id, structural
violation) the very same tuple object is returned, so callers can detect a
no-op with ``is``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Iterator, Sequence
from uuid import uuid4

from workout_builder.workout.model import Block, RepeatGroup, WorkoutItem

Items = tuple[WorkoutItem, ...]

MIN_REPEAT_COUNT = 1
MAX_REPEAT_COUNT = 99


def new_id() -> str:
    return uuid4().hex[:12]


def clone_block(block: Block) -> Block:
    return replace(block, id=new_id())


def clone_group(group: RepeatGroup) -> RepeatGroup:
    return replace(
        group,
        id=new_id(),
        blocks=tuple(clone_block(block) for block in group.blocks),
    )


def clone_item(item: WorkoutItem) -> WorkoutItem:
    if isinstance(item, RepeatGroup):
        return clone_group(item)
    return clone_block(item)


def find_item(items: Iterable[WorkoutItem], item_id: str) -> WorkoutItem | None:
    for item in items:
        if item.id == item_id:
            return item
        if isinstance(item, RepeatGroup):
            for block in item.blocks:
                if block.id == item_id:
                    return block
    return None


def find_block(items: Iterable[WorkoutItem], block_id: str) -> Block | None:
    found = find_item(items, block_id)
    return found if isinstance(found, Block) else None


def find_parent(items: Iterable[WorkoutItem], block_id: str) -> RepeatGroup | None:
    """Return the group holding ``block_id`` as a child, if any."""
    for item in items:
        if isinstance(item, RepeatGroup) and any(b.id == block_id for b in item.blocks):
            return item
    return None


def item_duration(item: WorkoutItem) -> int:
    return item.duration_sec


def total_duration(items: Iterable[WorkoutItem]) -> int:
    return sum(item_duration(item) for item in items)


def all_ids(items: Iterable[WorkoutItem]) -> list[str]:
    ids: list[str] = []
    for item in items:
        ids.append(item.id)
        if isinstance(item, RepeatGroup):
            ids.extend(block.id for block in item.blocks)
    return ids


class FlatBlocks:
    """Blocks in temporal order, repeat groups expanded in place.

    Iterating again restarts from the first block.
    """

    def __init__(self, items: Sequence[WorkoutItem]) -> None:
        self._items = items

    def __iter__(self) -> Iterator[Block]:
        for item in self._items:
            if isinstance(item, RepeatGroup):
                for _ in range(item.repeat_count):
                    yield from item.blocks
            else:
                yield item


def flatten(items: Sequence[WorkoutItem]) -> FlatBlocks:
    return FlatBlocks(items)


def insert(items: Items, item: WorkoutItem, index: int | None = None) -> Items:
    if index is None or index >= len(items):
        return items + (item,)
    position = max(0, index)
    return items[:position] + (item,) + items[position:]


def delete(items: Items, item_id: str) -> Items:
    out: list[WorkoutItem] = []
    changed = False
    for item in items:
        if item.id == item_id:
            changed = True
            continue
        if isinstance(item, RepeatGroup):
            children = tuple(b for b in item.blocks if b.id != item_id)
            if len(children) != len(item.blocks):
                changed = True
                if not children:
                    continue
                item = replace(item, blocks=children)
        out.append(item)
    return tuple(out) if changed else items


def duplicate(items: Items, item_id: str) -> tuple[Items, str | None]:
    """Insert a fresh-id copy right after ``item_id``; returns the copy's id."""
    for index, item in enumerate(items):
        if item.id == item_id:
            copy = clone_item(item)
            return items[: index + 1] + (copy,) + items[index + 1 :], copy.id
        if isinstance(item, RepeatGroup):
            for child_index, block in enumerate(item.blocks):
                if block.id == item_id:
                    copy_block = clone_block(block)
                    children = (
                        item.blocks[: child_index + 1]
                        + (copy_block,)
                        + item.blocks[child_index + 1 :]
                    )
                    group = replace(item, blocks=children)
                    return items[:index] + (group,) + items[index + 1 :], copy_block.id
    return items, None


def move(items: Items, item_id: str, new_index: int) -> Items:
    current = next((i for i, item in enumerate(items) if item.id == item_id), None)
    if current is None:
        return items
    target = max(0, min(len(items) - 1, new_index))
    if target == current:
        return items
    rest = items[:current] + items[current + 1 :]
    return rest[:target] + (items[current],) + rest[target:]


def replace_block(items: Items, block: Block) -> Items:
    for index, item in enumerate(items):
        if item.id == block.id and isinstance(item, Block):
            if item == block:
                return items
            return items[:index] + (block,) + items[index + 1 :]
        if isinstance(item, RepeatGroup):
            for child_index, child in enumerate(item.blocks):
                if child.id == block.id:
                    if child == block:
                        return items
                    children = item.blocks[:child_index] + (block,) + item.blocks[child_index + 1 :]
                    group = replace(item, blocks=children)
                    return items[:index] + (group,) + items[index + 1 :]
    return items


def clamp_repeat_count(count: int) -> int:
    return max(MIN_REPEAT_COUNT, min(MAX_REPEAT_COUNT, int(count)))


def set_repeat_count(items: Items, group_id: str, count: int) -> Items:
    count = clamp_repeat_count(count)
    for index, item in enumerate(items):
        if item.id == group_id and isinstance(item, RepeatGroup):
            if item.repeat_count == count:
                return items
            return items[:index] + (replace(item, repeat_count=count),) + items[index + 1 :]
    return items


def group(items: Items, item_ids: Iterable[str], repeat_count: int) -> tuple[Items, str | None]:
    """Wrap top-level blocks into a new repeat group at the first one's position.

    Refused (input returned unchanged) when any id is not a top-level block,
    e.g. a child of an existing group or another group.
    """
    wanted = set(item_ids)
    if not wanted:
        return items, None
    top_level_blocks = {item.id for item in items if isinstance(item, Block)}
    if not wanted <= top_level_blocks:
        return items, None

    selected: list[Block] = []
    remaining: list[WorkoutItem] = []
    insert_at = -1
    for item in items:
        if item.id in wanted and isinstance(item, Block):
            if insert_at == -1:
                insert_at = len(remaining)
            selected.append(item)
        else:
            remaining.append(item)

    new_group = RepeatGroup(
        id=new_id(),
        repeat_count=clamp_repeat_count(repeat_count),
        blocks=tuple(clone_block(block) for block in selected),
    )
    remaining.insert(insert_at, new_group)
    return tuple(remaining), new_group.id


def ungroup(items: Items, group_id: str) -> tuple[Items, list[str]]:
    """Replace a group by one fresh-id copy of its children."""
    for index, item in enumerate(items):
        if item.id == group_id and isinstance(item, RepeatGroup):
            children = tuple(clone_block(block) for block in item.blocks)
            return items[:index] + children + items[index + 1 :], [b.id for b in children]
    return items, []
