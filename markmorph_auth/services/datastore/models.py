"""Durable user store models."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, \
    String, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class DBUser(Base):  # type: ignore
    """
    Identity anchor for every account.

    ``user_id`` is the identity provider's subject id for password-owning
    accounts, and a locally generated UUID for guest WiFi users.
    """

    __tablename__ = 'users'

    user_id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    username = Column(String(64), nullable=False, unique=True)
    username_claimed = Column(Boolean, nullable=False, default=False)
    display_name = Column(String(255))
    creator_type = Column(String(64))
    category = Column(String(16))
    email_verified = Column(Boolean, nullable=False, default=False)
    onboarding_step = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False)

    profile = relationship('DBProfile', uselist=False, back_populates='user')
    business = relationship('DBBusiness', uselist=False,
                            back_populates='user')


class DBProfile(Base):  # type: ignore
    __tablename__ = 'profiles'

    profile_id = Column(String(64), primary_key=True)
    user_id = Column(ForeignKey('users.user_id'), nullable=False, unique=True)
    bio = Column(Text)
    location = Column(String(255))
    is_published = Column(Boolean, nullable=False, default=False)

    user = relationship('DBUser', back_populates='profile')


class DBBusiness(Base):  # type: ignore
    __tablename__ = 'businesses'

    business_id = Column(String(64), primary_key=True)
    user_id = Column(ForeignKey('users.user_id'), nullable=False, unique=True)
    business_name = Column(String(255), nullable=False)
    business_type = Column(String(64), nullable=False, default='OTHER')
    location = Column(String(255))

    user = relationship('DBUser', back_populates='business')


class DBUsernameHistory(Base):  # type: ignore
    """A username a user gave up, kept so that old links keep resolving."""

    __tablename__ = 'username_history'

    history_id = Column(Integer, primary_key=True, autoincrement=True)
    old_username = Column(String(64), nullable=False, unique=True)
    user_id = Column(ForeignKey('users.user_id'), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship('DBUser')


class DBReservedUsername(Base):  # type: ignore
    """Admin-controlled denylist of usernames."""

    __tablename__ = 'reserved_usernames'

    username = Column(String(64), primary_key=True)
    reason = Column(String(255))


class DBComplianceLog(Base):  # type: ignore
    """Captive-portal and login access log, kept for regulatory purposes."""

    __tablename__ = 'compliance_logs'

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    event = Column(String(32), nullable=False)
    mac_address = Column(String(64), nullable=False, default='unknown')
    phone = Column(String(32))
    business_id = Column(String(64))
    login_time = Column(DateTime(timezone=True), nullable=False)
