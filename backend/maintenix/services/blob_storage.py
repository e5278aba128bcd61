import re
import uuid
from pathlib import Path
from typing import Protocol

from maintenix.services.errors import IntakeError


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStorage(Protocol):
    def put(self, file_name: str, content: bytes) -> str:
        """Guarda el contenido y devuelve una URL descargable."""
        ...


class LocalBlobStorage:
    """
    Almacen en disco para desarrollo y despliegues pequeños.
    Los ficheros se sirven en ``/files/{key}`` (ver api/routes/files.py).
    """

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def put(self, file_name: str, content: bytes) -> str:
        key = f"{uuid.uuid4().hex}-{_safe_name(file_name)}"
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / key).write_bytes(content)
        return f"{self.public_base_url}/files/{key}"

    def resolve(self, key: str) -> Path | None:
        try:
            if _safe_name(key) != key:
                return None
        except IntakeError:
            return None
        path = self.root / key
        return path if path.is_file() else None


def _safe_name(file_name: str) -> str:
    name = _UNSAFE_CHARS.sub("_", Path(file_name).name).strip("._")
    if not name:
        raise IntakeError("Invalid file name")
    return name
