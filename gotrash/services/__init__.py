"""服务层: 串联 core 引擎的顶层流程"""

from gotrash.services.trash_service import TrashService

__all__ = ["TrashService"]
