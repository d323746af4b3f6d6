# portal/backend/api/schemas/envelope.py
from pydantic import BaseModel
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """ Tüm başarılı yanıtların ortak zarfı. """
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    code: str
    message: str
    errors: Optional[Dict[str, List[str]]] = None
