from models.base_model import Base, BaseModel
from sqlalchemy import Column, Integer, String


class User(BaseModel, Base):
    """Principal directory row. Provisioned outside this service."""
    __tablename__ = "users"
    __private_fields__ = ("password_hash",)

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="employee")
    department_id = Column(Integer, nullable=True)
