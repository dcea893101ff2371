import os
import uuid

# Configure the app before it is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from barber_analytics.auth import create_access_token
from barber_analytics.database import Base, enable_sqlite_foreign_keys, get_db
from barber_analytics.main import app
from barber_analytics.models import Product, Professional, Unit, User


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def unit(db):
    unit = Unit(name="Barbearia Centro")
    db.add(unit)
    db.commit()
    return unit


@pytest.fixture
def other_unit(db):
    unit = Unit(name="Barbearia Norte")
    db.add(unit)
    db.commit()
    return unit


def _user(db, role, email, unit=None):
    user = User(email=email, name=email.split("@")[0], role=role)
    db.add(user)
    db.flush()
    if unit is not None:
        db.add(Professional(user_id=user.id, unit_id=unit.id, name=user.name, role=role))
    db.commit()
    return user


@pytest.fixture
def users(db, unit):
    """One user per role working at `unit`, plus a manager from another unit"""
    return {
        "admin": _user(db, "admin", "admin@barber.test"),
        "gerente": _user(db, "gerente", "gerente@barber.test", unit),
        "barbeiro": _user(db, "barbeiro", "barbeiro@barber.test", unit),
        "recepcionista": _user(db, "recepcionista", "recepcao@barber.test", unit),
        "outsider": _user(db, "gerente", "outro@barber.test"),
    }


@pytest.fixture
def make_product(db, unit):
    def factory(**overrides):
        data = {
            "unit_id": unit.id,
            "name": "Pomada Modeladora",
            "sku": f"POM-{uuid.uuid4().hex[:6].upper()}",
            "cost_price": 20.0,
            "selling_price": 45.0,
            "current_stock": 0,
            "min_stock": 5,
            "max_stock": 50,
            "unit_of_measure": "UN",
        }
        data.update(overrides)
        product = Product(**data)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return factory


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return headers


class SpyRepository:
    """Records every attribute access; used to prove a call never reached the repository"""

    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append(name)
            raise AssertionError(f"repository.{name} must not be called")

        return record


@pytest.fixture
def spy():
    return SpyRepository()
