from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict

from booking_wizard.core.enums import NotificationCategory, NotificationType


class NotificationCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    category: NotificationCategory = NotificationCategory.BOOKING
    user_id: int
    is_read: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)
    action_url: str

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
