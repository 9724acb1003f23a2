"""Offline mode module: queue mutations, replay them when connected.

Designed for a marketplace client on flaky rural connections:
- Mutations are queued durably when the network call cannot complete
- Queued actions replay in order once connectivity returns
- Actions that keep failing are dead-lettered for inspection
- Last-known entity state is mirrored locally for offline reads

Usage:
    from ukulima.config import OfflineConfig
    from ukulima.offline import OfflineManager, SendMessage

    manager = OfflineManager.from_config(OfflineConfig.from_env())
    manager.enqueue(SendMessage(receiver="u1", content="hi"))

    # Network came back
    await manager.monitor.set_online(True)
"""
from ukulima.offline.actions import (
    ActionKind,
    ApiCall,
    CreateOrder,
    DeadLetter,
    QueuedAction,
    SendMessage,
    UpdateOrderStatus,
    UpdateProduct,
    new_action,
)
from ukulima.offline.connectivity import ConnectivityMonitor
from ukulima.offline.manager import OfflineManager
from ukulima.offline.mirror import MirrorEntry, MirrorStore
from ukulima.offline.queue import ActionQueue
from ukulima.offline.remote import RemoteAPI, RemoteError, is_reachable
from ukulima.offline.storage import FileStorage, MemoryStorage, StorageError
from ukulima.offline.sync import Reconciler

__all__ = [
    # Actions
    "ActionKind",
    "ApiCall",
    "CreateOrder",
    "DeadLetter",
    "QueuedAction",
    "SendMessage",
    "UpdateOrderStatus",
    "UpdateProduct",
    "new_action",
    # Components
    "ActionQueue",
    "ConnectivityMonitor",
    "MirrorEntry",
    "MirrorStore",
    "OfflineManager",
    "Reconciler",
    # Boundaries
    "FileStorage",
    "MemoryStorage",
    "StorageError",
    "RemoteAPI",
    "RemoteError",
    "is_reachable",
]
