from sqlalchemy import select, text

from trade_portal.db import SessionLocal, engine
from trade_portal.models import Base, StockCategory, StockOffice, User, UserRole
from trade_portal.security.passwords import hash_password

DEMO_USERS = (
    ('admin@example.com', 'adminpass', 'Portal Admin', UserRole.ADMIN, 'Finance'),
    ('staff@example.com', 'staffpass', 'Operations Staff', UserRole.STAFF, 'Operations'),
)

DEMO_STOCK = (
    ('A4 Paper', StockCategory.OFFICE_SUPPLIES, 40, 10, 'pack', 'Storage Room'),
    ('Printer Toner', StockCategory.OFFICE_SUPPLIES, 2, 3, 'unit', 'IT Room'),
    ('Drinking Water', StockCategory.CONSUMABLES, 0, 6, 'bottle', 'Kitchen'),
)


def create_schema() -> None:
    with engine.begin() as conn:
        conn.execute(text('CREATE EXTENSION IF NOT EXISTS citext'))
    Base.metadata.create_all(engine)


def seed() -> None:
    create_schema()
    with SessionLocal() as db:
        users = {}
        for email, password, full_name, role, department in DEMO_USERS:
            user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
            if not user:
                user = User(
                    email=email,
                    password_hash=hash_password(password),
                    full_name=full_name,
                    role=role,
                    department=department,
                    active=True,
                )
                db.add(user)
                db.flush()
            users[role] = user

        has_stock = db.execute(select(StockOffice.id).limit(1)).scalar_one_or_none()
        if not has_stock:
            for item_name, category, current, minimum, unit, location in DEMO_STOCK:
                db.add(
                    StockOffice(
                        item_name=item_name,
                        category=category,
                        current_stock=current,
                        min_stock=minimum,
                        unit=unit,
                        location=location,
                        last_updated_by=users[UserRole.ADMIN].id,
                    )
                )

        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')
