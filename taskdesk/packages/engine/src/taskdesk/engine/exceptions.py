"""Engine 异常体系

纯评估函数不抛出异常；这里的异常只出现在存储交互与调度配置层。
"""


class EngineError(Exception):
    """Engine 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 下一次运行是否可能自然恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class TenantProcessingError(EngineError):
    """单个租户处理失败（读取或写入存储出错）

    此异常只影响当前租户，不中断同批次其他租户。
    """

    def __init__(self, org_id: str, operation: str, original_error: Exception) -> None:
        """
        Args:
            org_id: 失败的租户
            operation: 失败时所处的步骤，如 load_tenant / aggregate_campaigns
            original_error: 原始异常
        """
        super().__init__(
            f"租户处理失败: {org_id} [{operation}] -- {original_error}",
            recoverable=True,
        )
        self.org_id = org_id
        self.operation = operation
        self.original_error = original_error


class InvalidScheduleError(EngineError):
    """调度表达式非法"""

    def __init__(self, expression: str) -> None:
        super().__init__(f"非法 cron 表达式: {expression!r}", recoverable=False)
        self.expression = expression
