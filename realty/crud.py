# realty/crud.py
"""Reference store: lookups and writes for locally owned reference data.

Identifier lookups return `None` when nothing matches. The `*_by_ids`
helpers resolve a whole set of identifiers in one query and return a dict
keyed by id, which is what the enrichment join relies on.
"""
from decimal import Decimal
from sqlalchemy import select, func
from sqlalchemy.orm import Session
from .models import Agent, City, PropertyType, User, Inquiry
from typing import Dict, Iterable, List, Optional


def _by_ids(db: Session, model, ids: Iterable[str]) -> Dict[str, object]:
    wanted = {i for i in ids if i}
    if not wanted:
        return {}
    rows = db.execute(select(model).where(model.id.in_(wanted))).unique().scalars().all()
    return {row.id: row for row in rows}

# users

def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)

def create_user(db: Session, name: str, email: str, phone: str = None, role: str = "USER") -> User:
    obj = User(name=name, email=email, phone=phone, role=role)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

# agents

def get_agent(db: Session, agent_id: str) -> Optional[Agent]:
    return db.get(Agent, agent_id)

def get_agents_by_ids(db: Session, ids: Iterable[str]) -> Dict[str, Agent]:
    return _by_ids(db, Agent, ids)

def list_agents(db: Session) -> List[Agent]:
    return db.execute(select(Agent).order_by(Agent.id)).unique().scalars().all()

def create_agent(db: Session, user_id: str, license_number: str = None, bio: str = None,
                 experience_years: int = 0, specializations: str = None,
                 profile_picture_url: str = None) -> Agent:
    obj = Agent(user_id=user_id, license_number=license_number, bio=bio,
                experience_years=experience_years or 0, specializations=specializations,
                profile_picture_url=profile_picture_url, rating=Decimal("0"), total_listings=0)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def set_agent_listing_count(db: Session, agent_id: str, count: int) -> bool:
    obj = db.get(Agent, agent_id)
    if not obj:
        return False
    obj.total_listings = count
    db.commit()
    return True

def adjust_agent_listing_count(db: Session, agent_id: str, delta: int) -> Optional[int]:
    obj = db.get(Agent, agent_id)
    if not obj:
        return None
    obj.total_listings = max(0, (obj.total_listings or 0) + delta)
    db.commit()
    return obj.total_listings

def set_agent_rating(db: Session, agent_id: str, rating: Decimal) -> bool:
    obj = db.get(Agent, agent_id)
    if not obj:
        return False
    obj.rating = rating
    db.commit()
    return True

def agent_statistics(db: Session) -> Dict[str, object]:
    total, avg_rating, listings = db.execute(
        select(func.count(Agent.id), func.avg(Agent.rating), func.sum(Agent.total_listings))
    ).one()
    return {
        "total_agents": total or 0,
        "average_rating": round(float(avg_rating or 0), 2),
        "total_listings": int(listings or 0),
    }

# cities / property types

def get_city(db: Session, city_id: str) -> Optional[City]:
    return db.get(City, city_id)

def get_cities_by_ids(db: Session, ids: Iterable[str]) -> Dict[str, City]:
    return _by_ids(db, City, ids)

def list_cities(db: Session) -> List[City]:
    return db.execute(select(City).order_by(City.name)).scalars().all()

def create_city(db: Session, name: str, country: str = "Bulgaria") -> City:
    obj = City(name=name, country=country)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_property_type(db: Session, type_id: str) -> Optional[PropertyType]:
    return db.get(PropertyType, type_id)

def get_property_types_by_ids(db: Session, ids: Iterable[str]) -> Dict[str, PropertyType]:
    return _by_ids(db, PropertyType, ids)

def list_property_types(db: Session) -> List[PropertyType]:
    return db.execute(select(PropertyType).order_by(PropertyType.name)).scalars().all()

def create_property_type(db: Session, name: str, description: str = None) -> PropertyType:
    obj = PropertyType(name=name, description=description)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

# inquiries

def create_inquiry(db: Session, property_id: str, agent_id: Optional[str], data: Dict) -> Inquiry:
    obj = Inquiry(property_id=property_id, agent_id=agent_id, **data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def list_inquiries_for_property(db: Session, property_id: str) -> List[Inquiry]:
    return db.execute(
        select(Inquiry).where(Inquiry.property_id == property_id).order_by(Inquiry.created_at)
    ).scalars().all()
