from sqlalchemy import Column, Integer, String, DateTime, Text, UniqueConstraint
from sqlalchemy.sql import func
from mkrfoods.database.database import Base


# ---------- USER ----------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


# ---------- OTP CHALLENGE ----------
class OtpChallenge(Base):
    __tablename__ = "otp_challenges"
    __table_args__ = (UniqueConstraint("flow", "key", name="uq_otp_challenges_flow_key"),)

    id = Column(Integer, primary_key=True, index=True)
    flow = Column(String, nullable=False, index=True)
    key = Column(String, nullable=False, index=True)
    code = Column(String(6), nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    payload = Column(Text, nullable=True)  # JSON-encoded pending signup data
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
