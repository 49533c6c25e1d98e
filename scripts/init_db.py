#!/usr/bin/env python3
"""Initialize database with tables"""

from horizon_infra.database import engine, Base
from horizon_infra.models import InfrastructureInstance, InstanceService

def init_db():
    """Create all tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print(f"✓ Created {InfrastructureInstance.__tablename__} and {InstanceService.__tablename__}")

if __name__ == "__main__":
    init_db()
