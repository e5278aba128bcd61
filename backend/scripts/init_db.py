import sys
from pathlib import Path


def main() -> int:
    backend_root = Path(__file__).resolve().parents[1]
    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))

    from maintenix.core.security import create_access_token
    from maintenix.db import session as db_session
    from maintenix.db.base import Base
    from maintenix.repositories import company_repo
    import maintenix.models  # noqa: F401

    Base.metadata.create_all(bind=db_session.engine)
    print("Tablas creadas")

    # uso: python scripts/init_db.py "Nombre empresa" -> crea la empresa y muestra un token
    if len(sys.argv) > 1:
        db = db_session.SessionLocal()
        try:
            company = company_repo.get_or_create(db, sys.argv[1])
            print(f"Empresa {company.id}: {company.name}")
            print("Token:", create_access_token(company.id, expires_minutes=60 * 24))
        finally:
            db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
