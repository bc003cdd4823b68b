"""依赖风险传播

在一个租户的评估结果合并完成之后运行：对每个有上游依赖的 not_started
任务沿依赖链向上查找，遇到有效标记为 hard 的祖先即把本任务从 none 提升为 soft。
依赖按构造是森林，但向上遍历仍用 visited 集合防止环路死循环。
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from taskdesk.core.models import RiskFlag, Task, TaskStatus


@dataclass(frozen=True)
class Propagation:
    """一次风险传播：task_id 因 origin_task_id 被提升为 soft"""

    task_id: str
    origin_task_id: str
    depth: int


@dataclass
class PropagationResult:
    """传播结果：合并后的有效标记 + 传播记录"""

    flags: dict[str, RiskFlag]
    propagated: list[Propagation] = field(default_factory=list)


def find_hard_ancestor(
    task_id: str,
    dependency_of: Mapping[str, str | None],
    flags: Mapping[str, RiskFlag],
) -> tuple[str, int] | None:
    """沿依赖链向上查找第一个有效标记为 hard 的祖先

    Returns:
        (祖先 task_id, 层数)；不存在或遇到环时返回 None
    """
    visited = {task_id}
    current = dependency_of.get(task_id)
    depth = 1
    while current is not None and current not in visited:
        if flags.get(current, RiskFlag.NONE) == RiskFlag.HARD:
            return current, depth
        visited.add(current)
        current = dependency_of.get(current)
        depth += 1
    return None


def propagate_dependency_risk(
    tasks: Iterable[Task],
    flags: Mapping[str, RiskFlag],
) -> PropagationResult:
    """对一个租户的已评估任务批次做一次传播

    Args:
        tasks: 租户内任务（含 completed，用于维持依赖链）
        flags: 本轮评估后的有效标记，缺省视为 none

    Returns:
        PropagationResult，flags 为传播后的新映射（不修改入参）
    """
    tasks = list(tasks)
    dependency_of = {task.task_id: task.dependency_id for task in tasks}
    # soft 不会反过来产生 hard，因此一次遍历即可收敛
    result = PropagationResult(flags=dict(flags))

    for task in tasks:
        if task.status != TaskStatus.NOT_STARTED or task.dependency_id is None:
            continue
        if result.flags.get(task.task_id, RiskFlag.NONE) != RiskFlag.NONE:
            continue
        found = find_hard_ancestor(task.task_id, dependency_of, result.flags)
        if found is None:
            continue
        origin_task_id, depth = found
        result.flags[task.task_id] = RiskFlag.SOFT
        result.propagated.append(
            Propagation(task_id=task.task_id, origin_task_id=origin_task_id, depth=depth)
        )

    return result
