"""按会话 ID 划分的异步互斥锁。"""

import asyncio
import weakref


class KeyedLocks:
    """每个 key 一把 asyncio.Lock，不同 key 之间互不阻塞。

    锁对象以弱引用保存：没有协程持有或等待时自动回收，
    因此长期运行也不会随会话数量无限增长。
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
