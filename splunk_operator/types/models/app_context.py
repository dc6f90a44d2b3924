from datetime import datetime
from typing import Dict, List, Optional
from splunk_operator.types.base import BaseModel
from splunk_operator.types.models.remote_object import RemoteObject


class AppSourceStatus(BaseModel):
    """Last known listing of a single app source."""

    objects: List[RemoteObject]
    last_listed: Optional[datetime]
    error: Optional[str]


class AppContext(BaseModel):
    """App framework bookkeeping persisted in the descriptor status."""

    spec_hash: Optional[str]
    apps_repo_poll_interval: Optional[int]
    last_app_info_check_time: Optional[datetime]
    app_sources: Dict[str, AppSourceStatus]
