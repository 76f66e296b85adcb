# plugins/twitter/models.py
"""
Credential payload stored for a connected Twitter account.

Field names are camelCase on the wire (that is what the dashboard and the
stored JSON use) and snake_case in Python.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TwitterCredentials(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    api_key: Optional[str] = None
    api_secret_key: Optional[str] = None
    access_token: str
    access_token_secret: str
    user_id: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
