"""事件日志内存视图

引擎在单个租户的一次处理中批量读取事件，构建按 task_id 分组、
按时间排序的只读索引，支持"某任务最近一次 X 类型事件"查询。
纯评估函数直接对事件序列使用 latest_event()。
"""

from collections import defaultdict
from collections.abc import Iterable

from .models.enums import TaskEventType
from .models.event import TaskEvent


def latest_event(
    events: Iterable[TaskEvent],
    *,
    task_id: str,
    event_type: TaskEventType,
    new_value: str | None = None,
) -> TaskEvent | None:
    """在事件序列中查找指定任务最近一次匹配的事件

    Args:
        events: 任意顺序的事件序列
        task_id: 任务 ID
        event_type: 事件类型
        new_value: 如指定，new_value 也必须相等

    Returns:
        ts 最大的匹配事件；不存在时返回 None
    """
    found: TaskEvent | None = None
    for event in events:
        if event.task_id != task_id or event.event_type != event_type:
            continue
        if new_value is not None and event.new_value != new_value:
            continue
        if found is None or event.ts > found.ts:
            found = event
    return found


class EventLog:
    """按任务索引的事件快照（不可变）"""

    def __init__(self, events: Iterable[TaskEvent] = ()) -> None:
        by_task: dict[str, list[TaskEvent]] = defaultdict(list)
        for event in events:
            by_task[event.task_id].append(event)
        # 同一任务内按时间正序
        self._by_task: dict[str, tuple[TaskEvent, ...]] = {
            task_id: tuple(sorted(items, key=lambda e: e.ts))
            for task_id, items in by_task.items()
        }

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_task.values())

    def for_tasks(self, *task_ids: str | None) -> list[TaskEvent]:
        """返回若干任务的事件切片（忽略 None）"""
        result: list[TaskEvent] = []
        for task_id in dict.fromkeys(t for t in task_ids if t):
            result.extend(self._by_task.get(task_id, ()))
        return result

    def latest(
        self,
        task_id: str,
        event_type: TaskEventType,
        new_value: str | None = None,
    ) -> TaskEvent | None:
        """某任务最近一次匹配的事件"""
        for event in reversed(self._by_task.get(task_id, ())):
            if event.event_type != event_type:
                continue
            if new_value is not None and event.new_value != new_value:
                continue
            return event
        return None
