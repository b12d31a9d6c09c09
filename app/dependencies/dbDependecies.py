from fastapi import Depends
from sqlalchemy.orm import Session
from typing import Annotated
from app.core.config import Settings, get_settings
from app.database.database import get_db

db_dependency = Annotated[Session, Depends(get_db)]

settings_dependency = Annotated[Settings, Depends(get_settings)]
