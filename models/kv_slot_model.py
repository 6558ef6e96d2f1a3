# models/kv_slot_model.py
from datetime import datetime
from sqlalchemy import Column, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import sqlalchemy # Para DateTime

Base = declarative_base()

class KeyValueSlotModel(Base):
    """
    Almacén clave-valor mínimo: cada fila es un slot con nombre que guarda
    un documento serializado completo (ej. toda la colección de trades en JSON).
    """
    __tablename__ = "kv_slots"

    key: str = Column(String, primary_key=True, index=True)
    value: str = Column(Text, nullable=False)

    updated_at: datetime = Column(sqlalchemy.DateTime(timezone=True), default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<KeyValueSlot(key='{self.key}', size={len(self.value) if self.value else 0})>"
