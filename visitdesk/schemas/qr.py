from pydantic import BaseModel


class QRStatusUpdate(BaseModel):
    isActive: bool
