from sqlalchemy import select
from sqlalchemy.orm import Session

from maintenix.models.location import Location


def get_by_name(db: Session, company_id: int, name: str) -> Location | None:
    # los nombres no son unicos: se usa la ubicacion mas antigua
    return db.scalar(
        select(Location)
        .where(Location.company_id == company_id, Location.name == name.strip())
        .order_by(Location.id.asc())
        .limit(1)
    )


def get_by_path(db: Session, company_id: int, path: str) -> Location | None:
    return db.scalar(
        select(Location)
        .where(Location.company_id == company_id, Location.path == path.strip())
        .order_by(Location.id.asc())
        .limit(1)
    )


def build_location(
    db: Session,
    *,
    company_id: int,
    name: str,
    description: str | None = None,
    icon: str | None = None,
    parent: Location | None = None,
) -> Location:
    """Nueva ubicacion (sin guardar) con path y level calculados desde el padre."""
    if parent is not None:
        path = f"{parent.path}/{name}"
        level = parent.level + 1
        # el padre deja de ser hoja; se guarda junto con el hijo
        parent.is_leaf = False
    else:
        path = f"/{name}"
        level = 0
    return Location(
        company_id=company_id,
        name=name,
        description=description,
        icon=icon,
        parent_id=parent.id if parent is not None else None,
        path=path,
        level=level,
        is_leaf=True,
    )


def create_location(db: Session, **kwargs) -> Location:
    location = build_location(db, **kwargs)
    db.add(location)
    db.commit()
    db.refresh(location)
    return location
