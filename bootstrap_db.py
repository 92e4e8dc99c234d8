# bootstrap_db.py: create the schema in DATABASE_URL

from db import DB_URL, engine
from models import Base

if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    print(f"✅ Tables ready in {DB_URL}: {', '.join(sorted(Base.metadata.tables))}")
