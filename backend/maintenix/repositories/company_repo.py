from sqlalchemy import select
from sqlalchemy.orm import Session

from maintenix.models.company import Company


def get(db: Session, company_id: int) -> Company | None:
    return db.get(Company, company_id)


def get_or_create(db: Session, name: str) -> Company:
    normalized = name.strip()
    company = db.scalar(select(Company).where(Company.name == normalized))
    if company:
        return company
    company = Company(name=normalized)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company
