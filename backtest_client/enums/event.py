from enum import Enum


class EventType(str, Enum):
    """
    事件类型枚举
    """
    TASK_UPDATED = "TASK_UPDATED"  # 任务记录更新
    STREAM_CONNECTED = "STREAM_CONNECTED"  # 任务流已连接
    STREAM_DISCONNECTED = "STREAM_DISCONNECTED"  # 任务流断开
    SUBMISSION_STARTED = "SUBMISSION_STARTED"  # 提交回测
    SUBMISSION_COMPLETED = "SUBMISSION_COMPLETED"  # 提交成功
    SUBMISSION_FAILED = "SUBMISSION_FAILED"  # 提交失败
    SELECTION_CHANGED = "SELECTION_CHANGED"  # 选中任务变化
    CHART_LOADED = "CHART_LOADED"  # 图表加载完成
    CHART_LOAD_FAILED = "CHART_LOAD_FAILED"  # 图表加载失败
