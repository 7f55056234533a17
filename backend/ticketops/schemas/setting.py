from pydantic import BaseModel
from typing import Any


class SettingValue(BaseModel):
    value: Any
