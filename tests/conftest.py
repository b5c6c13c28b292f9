"""
Test configuration and fixtures.
"""
import os
import pytest
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from fastapi.testclient import TestClient

# Set test database URL before importing app
os.environ["DATABASE_URL"] = "sqlite:///./kitchen_test.db"

from kitchen_api.main import app
from kitchen_api.db.base import Base
from kitchen_api.db.session import get_db, get_session_factory
from kitchen_api.models import Ingredient, Recipe


@pytest.fixture(scope="function")
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """A fresh SQLite database per test, with the schema created."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'kitchen.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create a database session for the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db: Session, session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    """Create test client with database session and session factory overrides."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def beef(db: Session) -> Ingredient:
    """A priced ingredient."""
    ingredient = Ingredient(
        id="ing1",
        name="Beef chuck",
        unit="kg",
        current_price=10,
        brand="Friboi",
        supplier="Central Meats",
        category="meat",
    )
    db.add(ingredient)
    db.commit()
    db.refresh(ingredient)
    return ingredient


def beef_reference(reference_id: str = "ing1_169900000", price: float = 10.0, **weights) -> dict:
    """A legacy ingredient-reference to ``beef``, without an explicit ingredient_id."""
    reference = {
        "id": reference_id,
        "name": "Beef chuck",
        "current_price": price,
        "raw_price_kg": price,
    }
    reference.update(weights)
    return reference


@pytest.fixture
def stored_recipes(db: Session, beef: Ingredient) -> list:
    """Two recipes referencing ``beef`` and one that does not."""
    recipes = [
        Recipe(
            id="stew",
            name="Beef stew",
            category="mains",
            preparations=[{
                "id": "prep-1",
                "title": "Braise",
                "processes": ["cooking"],
                "ingredients": [beef_reference(weight_raw=2.0, weight_cooked=1.4)],
            }],
        ),
        Recipe(
            id="burger",
            name="Burger",
            category="mains",
            preparations=[{
                "id": "prep-1",
                "title": "Patties",
                "processes": ["defrosting"],
                "ingredients": [beef_reference(weight_frozen=1.0, weight_thawed=0.9)],
            }],
        ),
        Recipe(
            id="salad",
            name="Green salad",
            category="starters",
            preparations=[{
                "id": "prep-1",
                "title": "Wash",
                "processes": ["cleaning"],
                "ingredients": [{
                    "id": "ing2_169900000",
                    "name": "Lettuce",
                    "current_price": 4.0,
                    "weight_raw": 1.0,
                    "weight_clean": 0.8,
                }],
            }],
        ),
    ]
    db.add_all(recipes)
    db.commit()
    return recipes
