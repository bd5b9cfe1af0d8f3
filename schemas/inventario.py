"""
Schemas Pydantic para el inventario
"""
from pydantic import BaseModel


class ReconciliacionResponse(BaseModel):
    procesados: int
    agregados: int
    removidos: int
