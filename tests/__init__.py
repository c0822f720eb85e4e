import os

# in-memory database for the whole test run; must be set before vetclinic.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTH_SECRET", "test-secret")
