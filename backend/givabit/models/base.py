from sqlalchemy.orm import declarative_base

# Base class for ORM models; metadata is collected in db.base.create_all
Base = declarative_base()
