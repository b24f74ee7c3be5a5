from datetime import datetime, timezone
import uuid


class Clock:
    """Source of timestamps and client-generated ids"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def new_id(self) -> str:
        return str(uuid.uuid4())

