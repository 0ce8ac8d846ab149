"""
Connexion à la base de données PostgreSQL via SQLAlchemy (moteur synchrone).
Chaque requête HTTP reçoit sa propre session ; les services gèrent le commit.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from tutorcenter.config import settings

# pool_pre_ping : évite les connexions mortes après un redémarrage de PostgreSQL
engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
