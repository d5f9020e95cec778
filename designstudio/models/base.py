# designstudio/models/base.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class TimeStampedModel(BaseModel):
    """Base model with timestamp fields"""
    created_at: datetime
    updated_at: Optional[datetime] = None
    
    model_config = ConfigDict(from_attributes=True)

class RequestModel(BaseModel):
    """Base model for request bodies; accepts camelCase and snake_case keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
