from sqlalchemy import select
from sqlalchemy.orm import Session

from maintenix.models.machine_model import MachineModel


def get_by_name(db: Session, company_id: int, name: str) -> MachineModel | None:
    return db.scalar(
        select(MachineModel)
        .where(MachineModel.company_id == company_id, MachineModel.name == name.strip())
        .order_by(MachineModel.id.asc())
        .limit(1)
    )


def create_machine_model(
    db: Session,
    *,
    company_id: int,
    name: str,
    manufacturer: str,
    brand: str,
    year: int,
    properties: dict | None = None,
) -> MachineModel:
    model = MachineModel(
        company_id=company_id,
        name=name,
        manufacturer=manufacturer,
        brand=brand,
        year=year,
        properties=properties or {},
    )
    db.add(model)
    db.commit()
    db.refresh(model)
    return model
