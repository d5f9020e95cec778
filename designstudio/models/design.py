# designstudio/models/design.py
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel
from .base import TimeStampedModel

class ElementType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    CLIPART = "clipart"

class DesignView(str, Enum):
    FRONT = "front"
    BACK = "back"

class DesignElement(BaseModel):
    """A single printable element placed on a design"""
    type: ElementType
    view: DesignView = DesignView.FRONT
    content: Optional[str] = None

class Design(TimeStampedModel):
    """Saved custom design"""
    design_id: int
    name: str
    user_id: Optional[int] = None
    elements: List[DesignElement] = []
    is_deleted: bool = False

    @property
    def text_count(self) -> int:
        return sum(1 for el in self.elements if el.type == ElementType.TEXT)

    @property
    def image_count(self) -> int:
        return sum(1 for el in self.elements if el.type in (ElementType.IMAGE, ElementType.CLIPART))

    @property
    def has_back_print(self) -> bool:
        return any(el.view == DesignView.BACK for el in self.elements)
