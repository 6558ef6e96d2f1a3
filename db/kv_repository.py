# db/kv_repository.py
import logging
from typing import Optional
from sqlalchemy.orm import Session

from models.kv_slot_model import KeyValueSlotModel

logger = logging.getLogger(__name__)

class KeyValueRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_key(self, key: str) -> Optional[KeyValueSlotModel]:
        return self.db.query(KeyValueSlotModel).filter(KeyValueSlotModel.key == key).first()

    def get_value(self, key: str) -> Optional[str]:
        """Devuelve el contenido crudo del slot o None si nunca se escribió."""
        db_slot = self.get_by_key(key)
        return db_slot.value if db_slot else None

    def put(self, key: str, value: str) -> KeyValueSlotModel:
        """Crea o sobrescribe el slot completo (upsert)."""
        db_slot = self.get_by_key(key)
        if db_slot is None:
            db_slot = KeyValueSlotModel(key=key, value=value)
        else:
            db_slot.value = value
        try:
            self.db.add(db_slot)
            self.db.commit()
            self.db.refresh(db_slot)
            logger.debug(f"Slot '{key}' guardado ({len(value)} bytes).")
            return db_slot
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error guardando slot '{key}' en BD: {e}", exc_info=True)
            raise # Relanzar para que el llamador sepa que falló

