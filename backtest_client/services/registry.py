from typing import Callable, Dict, List, Optional

from backtest_client.core.logger import get_logger
from backtest_client.schemas.task import BacktestTask

logger = get_logger("TaskRegistry")

Listener = Callable[[], None]


class TaskRegistry:
    """
    任务注册表
    按首次出现的顺序保存任务；同 id 的更新整条替换 (last-write-wins)
    """

    def __init__(self):
        self._tasks: Dict[str, BacktestTask] = {}
        self._connected = False
        self._listeners: List[Listener] = []

    def tasks(self) -> List[BacktestTask]:
        return list(self._tasks.values())

    def get(self, task_id: str) -> Optional[BacktestTask]:
        return self._tasks.get(task_id)

    def connected(self) -> bool:
        return self._connected

    def __len__(self):
        return len(self._tasks)

    def __contains__(self, task_id: str):
        return task_id in self._tasks

    def add_listener(self, listener: Listener):
        """Listeners run synchronously after every task mutation."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def apply(self, task: BacktestTask) -> bool:
        """
        合并一条更新记录，返回是否为新任务
        """
        is_new = task.id not in self._tasks
        # dict 保留首次插入的位置，替换不改变顺序
        self._tasks[task.id] = task
        if is_new:
            logger.info(f"Registered task {task.id} ({task.name} {task.symbol}) [{task.status.value}]")
        else:
            logger.debug(f"Updated task {task.id} [{task.status.value}]")

        for listener in list(self._listeners):
            listener()
        return is_new

    def set_connected(self, connected: bool) -> bool:
        """
        更新连接状态；断开时保留已有任务。返回状态是否变化
        """
        if connected == self._connected:
            return False
        self._connected = connected
        logger.info("Task stream connected" if connected else "Task stream disconnected")
        return True
