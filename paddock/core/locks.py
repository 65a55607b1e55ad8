import threading
import zlib
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.orm import Session

# ==============================================================================
# CERROJOS POR CLAVE
# ==============================================================================
# Serializan la sincronización de un mismo piloto y la evaluación de un mismo
# shuffle dentro del proceso. En PostgreSQL además se toma un advisory lock de
# transacción, que cubre varios workers contra la misma base de datos.

_registry_lock = threading.Lock()
# clave -> [cerrojo, hilos que lo usan]; la entrada se borra al quedar libre
_locks: dict[tuple[str, int], list] = {}


def _advisory_key(namespace: str) -> int:
    # pg_advisory_xact_lock(int, int): el primer entero identifica el espacio
    return zlib.crc32(namespace.encode()) & 0x7FFFFFFF


def acquire_advisory_lock(db: Session, namespace: str, key: int):
    """Advisory lock ligado a la transacción actual (sólo PostgreSQL)."""
    bind = db.get_bind()
    if bind.dialect.name != "postgresql":
        return
    db.execute(
        text("SELECT pg_advisory_xact_lock(:ns, :key)"),
        {"ns": _advisory_key(namespace), "key": key},
    )


@contextmanager
def keyed_lock(namespace: str, key: int):
    name = (namespace, key)
    with _registry_lock:
        entry = _locks.setdefault(name, [threading.RLock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[name]
