"""Taskdesk Gateway -- 引擎触发端点 + 状态变更入口 + 风险只读视图"""
