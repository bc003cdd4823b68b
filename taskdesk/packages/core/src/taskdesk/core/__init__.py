"""Taskdesk Core -- 领域模型、事件日志与 SQLite 存储"""
