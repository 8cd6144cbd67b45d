"""
工作流异常定义
"""


class WorkflowInvariantError(RuntimeError):
    """
    工作流不变量被破坏（编程错误）

    唯一会中断队列的异常类型，其余失败都按条目隔离处理。
    """
