"""InvalidationHub -- 按租户的缓存失效版本号

风险或 Campaign 状态变化、任务状态变更时调用 invalidate(org_id)，
租户版本号 +1。缓存条目记录生成时的版本号，读取时与当前版本比较，
不一致即视为过期。
"""

from collections import defaultdict

import structlog

log = structlog.get_logger()


class InvalidationHub:
    """进程内租户版本计数器"""

    def __init__(self) -> None:
        self._versions: dict[str, int] = defaultdict(int)

    def version(self, org_id: str) -> int:
        """当前租户数据版本号，未失效过的租户为 0"""
        return self._versions.get(org_id, 0)

    async def invalidate(self, org_id: str, reason: str) -> int:
        """使租户缓存失效

        Args:
            org_id: 租户 ID
            reason: 失效原因，如 risk_changed / status_changed

        Returns:
            失效后的版本号
        """
        self._versions[org_id] += 1
        version = self._versions[org_id]
        await log.adebug("tenant_cache_invalidated", org_id=org_id, version=version, reason=reason)
        return version
