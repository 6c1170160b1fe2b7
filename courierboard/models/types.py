# courierboard type definitions
# Rev 0.2.0

from __future__ import annotations
from typing import Literal

# Tables exposed by the hosted store
TableName = Literal["weeks", "tasks", "task_notes"]

# Row-level change kinds pushed by the change feed
ChangeKind = Literal["INSERT", "UPDATE", "DELETE"]
