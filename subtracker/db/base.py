from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Note: Models are imported in subtracker.db.models to register them on Base.metadata
# All models must import Base from this module
