"""
Service API for the durable user store.

Users, profiles, businesses, username history, the reserved-username table
and compliance logs live in a relational database accessed through
SQLAlchemy. Uniqueness of e-mail addresses, usernames and archived usernames
is enforced by the database; violations surface as :class:`.Conflict`.
"""

from typing import Any, Generator, Optional, Tuple
from contextlib import contextmanager
from datetime import datetime
import logging
import uuid

from pytz import UTC
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session
from sqlalchemy.pool import StaticPool

from ... import domain
from ...exceptions import AuthError, Conflict, NotFound, StoreUnavailable
from .models import Base, DBUser, DBProfile, DBBusiness, DBUsernameHistory, \
    DBReservedUsername, DBComplianceLog

logger = logging.getLogger(__name__)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_domain(db_user: DBUser) -> domain.User:
    category = domain.UserCategory(db_user.category) \
        if db_user.category else None
    business = db_user.business
    return domain.User(
        user_id=db_user.user_id,
        email=db_user.email,
        username=db_user.username,
        username_claimed=bool(db_user.username_claimed),
        category=category,
        email_verified=bool(db_user.email_verified),
        onboarding_step=db_user.onboarding_step or 0,
        is_active=bool(db_user.is_active),
        display_name=db_user.display_name,
        creator_type=db_user.creator_type,
        last_login_at=_utc(db_user.last_login_at),
        has_profile=db_user.profile is not None,
        has_business=business is not None,
        business_id=business.business_id if business is not None else None,
        business_name=business.business_name
        if business is not None else None,
    )


class UserStore(object):
    """Container for the database engine and the queries the core needs."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessionmaker = sessionmaker(bind=engine,
                                          expire_on_commit=False)

    @classmethod
    def from_uri(cls, uri: str) -> 'UserStore':
        """Create a store for a database URI."""
        if uri in ('sqlite://', 'sqlite:///:memory:'):
            engine = create_engine(
                uri, connect_args={'check_same_thread': False},
                poolclass=StaticPool
            )
        else:
            engine = create_engine(uri, pool_pre_ping=True)
        return cls(engine)

    def create_all(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables in the database."""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """Context manager for a database transaction."""
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            logger.info('Commit rejected by a constraint: %s', e.orig)
            session.rollback()
            raise Conflict('Record already exists') from e
        except OperationalError as e:
            logger.error('Database unavailable, rolling back: %s', e)
            session.rollback()
            raise StoreUnavailable('Database is temporarily unavailable') \
                from e
        except AuthError:
            session.rollback()
            raise
        except Exception as e:
            logger.error('Commit failed, rolling back: %s', str(e))
            session.rollback()
            raise
        finally:
            session.close()

    # Users.

    def get_user(self, user_id: str) -> Optional[domain.User]:
        """Load a user by id."""
        with self.transaction() as session:
            db_user = session.get(DBUser, user_id)
            return _to_domain(db_user) if db_user is not None else None

    def get_user_by_email(self, email: str) -> Optional[domain.User]:
        """Load a user by normalized e-mail address."""
        with self.transaction() as session:
            db_user = session.query(DBUser) \
                .filter(DBUser.email == email) \
                .first()
            return _to_domain(db_user) if db_user is not None else None

    def email_exists(self, email: str) -> bool:
        """Determine whether a user with this address already exists."""
        with self.transaction() as session:
            return session.query(DBUser.user_id) \
                .filter(DBUser.email == email) \
                .first() is not None

    def ensure_user(self, user_id: str, email: str, username: str) \
            -> Tuple[domain.User, bool]:
        """
        Create or update the verified user whose id is ``user_id``.

        This is the single write path for provider-backed accounts, so it is
        safe to repeat: an existing row with the same id and e-mail is marked
        verified and returned.

        Parameters
        ----------
        user_id : str
            The identity provider's subject id.
        email : str
        username : str
            Temporary username to use if the row has to be created.

        Returns
        -------
        :class:`.domain.User`
        bool
            Whether the row was created.

        Raises
        ------
        :class:`.Conflict`
            If the e-mail already belongs to a different id, or the row for
            this id has a different e-mail.

        """
        with self.transaction() as session:
            by_email = session.query(DBUser) \
                .filter(DBUser.email == email) \
                .first()
            if by_email is not None and by_email.user_id != user_id:
                logger.error('User %s exists locally under another id',
                             by_email.user_id)
                raise Conflict('Email is linked to a different account')
            db_user = session.get(DBUser, user_id)
            if db_user is not None:
                if db_user.email != email:
                    raise Conflict('Account id is linked to another email')
                db_user.email_verified = True
                session.flush()
                return _to_domain(db_user), False

            db_user = DBUser(
                user_id=user_id,
                email=email,
                username=username,
                username_claimed=False,
                email_verified=True,
                onboarding_step=1,
                is_active=True,
                created_at=domain.now(),
            )
            session.add(db_user)
            session.flush()
            return _to_domain(db_user), True

    def find_or_create_guest(self, email: str, username: str) \
            -> Tuple[domain.User, bool]:
        """
        Get the user for ``email``, creating a guest creator if needed.

        Existing active users are marked verified and their login time
        updated; disabled users are returned untouched.
        """
        at = domain.now()
        with self.transaction() as session:
            db_user = session.query(DBUser) \
                .filter(DBUser.email == email) \
                .first()
            if db_user is not None:
                if db_user.is_active:
                    db_user.email_verified = True
                    db_user.last_login_at = at
                    session.flush()
                return _to_domain(db_user), False
            db_user = DBUser(
                user_id=str(uuid.uuid4()),
                email=email,
                username=username,
                username_claimed=False,
                category=domain.UserCategory.CREATOR.value,
                email_verified=True,
                onboarding_step=1,
                is_active=True,
                last_login_at=at,
                created_at=at,
            )
            session.add(db_user)
            session.flush()
            return _to_domain(db_user), True

    def update_user(self, user_id: str, **fields: Any) -> domain.User:
        """Update columns on a user and return the result."""
        with self.transaction() as session:
            db_user = session.get(DBUser, user_id)
            if db_user is None:
                raise NotFound('User not found')
            for key, value in fields.items():
                if isinstance(value, domain.UserCategory):
                    value = value.value
                setattr(db_user, key, value)
            session.flush()
            return _to_domain(db_user)

    def record_login(self, user_id: str) -> domain.User:
        """Set the user's last login time to now."""
        return self.update_user(user_id, last_login_at=domain.now())

    # Usernames.

    def username_in_use(self, username: str) -> bool:
        """Determine whether a current user holds ``username``."""
        with self.transaction() as session:
            return session.query(DBUser.user_id) \
                .filter(DBUser.username == username) \
                .first() is not None

    def username_archived(self, username: str, at: datetime) -> bool:
        """Determine whether ``username`` has an unexpired history row."""
        with self.transaction() as session:
            return session.query(DBUsernameHistory.history_id) \
                .filter(DBUsernameHistory.old_username == username) \
                .filter(DBUsernameHistory.expires_at > at) \
                .first() is not None

    def username_reserved(self, username: str) -> bool:
        """Determine whether ``username`` is in the reserved table."""
        with self.transaction() as session:
            return session.get(DBReservedUsername, username) is not None

    def reserve_username(self, username: str, reason: str = '') -> None:
        """Add a username to the reserved table."""
        with self.transaction() as session:
            session.add(DBReservedUsername(username=username, reason=reason))

    def change_username(self, user_id: str, username: str,
                        archive_until: Optional[datetime] = None) \
            -> Optional[str]:
        """
        Give ``user_id`` the username ``username``.

        If ``archive_until`` is set and the user's previous username was
        claimed, the previous username is archived in the history table until
        that time, replacing any expired history row for the same name.

        Returns
        -------
        str or None
            The archived username, if one was archived.

        Raises
        ------
        :class:`.NotFound`
        :class:`.Conflict`
            If another row already holds ``username``.

        """
        archived: Optional[str] = None
        with self.transaction() as session:
            db_user = session.get(DBUser, user_id)
            if db_user is None:
                raise NotFound('User not found')
            old = db_user.username
            if archive_until is not None and db_user.username_claimed \
                    and old and old != username:
                session.query(DBUsernameHistory) \
                    .filter(DBUsernameHistory.old_username == old) \
                    .filter(DBUsernameHistory.expires_at <= domain.now()) \
                    .delete(synchronize_session=False)
                session.add(DBUsernameHistory(
                    old_username=old,
                    user_id=user_id,
                    expires_at=archive_until,
                    created_at=domain.now(),
                ))
                archived = old
            db_user.username = username
            db_user.username_claimed = True
        return archived

    def resolve_old_username(self, username: str, at: datetime) \
            -> Optional[str]:
        """Get the current username of whoever gave up ``username``."""
        with self.transaction() as session:
            history = session.query(DBUsernameHistory) \
                .filter(DBUsernameHistory.old_username == username) \
                .first()
            if history is None or history.user is None:
                return None
            if _utc(history.expires_at) <= at:
                return None
            current: str = history.user.username
            return current

    # Onboarding.

    def upsert_profile(self, user_id: str, **fields: Any) -> None:
        """Create or update the user's profile."""
        with self.transaction() as session:
            profile = session.query(DBProfile) \
                .filter(DBProfile.user_id == user_id) \
                .first()
            if profile is None:
                profile = DBProfile(profile_id=str(uuid.uuid4()),
                                    user_id=user_id, is_published=False)
                session.add(profile)
            for key, value in fields.items():
                setattr(profile, key, value)

    def upsert_business(self, user_id: str, **fields: Any) -> None:
        """Create or update the user's business."""
        with self.transaction() as session:
            business = session.query(DBBusiness) \
                .filter(DBBusiness.user_id == user_id) \
                .first()
            if business is None:
                business = DBBusiness(business_id=str(uuid.uuid4()),
                                      user_id=user_id)
                session.add(business)
            for key, value in fields.items():
                setattr(business, key, value)

    # Compliance.

    def add_compliance_log(self, record: domain.ComplianceRecord) -> None:
        """Persist one compliance record."""
        with self.transaction() as session:
            session.add(DBComplianceLog(
                user_id=record.user_id,
                event=record.event,
                mac_address=record.mac_address or 'unknown',
                phone=record.phone,
                business_id=record.business_id,
                login_time=record.login_time or domain.now(),
            ))

    def compliance_logs(self, user_id: str) -> list:
        """Get the compliance records of a user, oldest first."""
        with self.transaction() as session:
            rows = session.query(DBComplianceLog) \
                .filter(DBComplianceLog.user_id == user_id) \
                .order_by(DBComplianceLog.log_id) \
                .all()
            return [
                domain.ComplianceRecord(
                    user_id=row.user_id,
                    event=row.event,
                    mac_address=row.mac_address,
                    business_id=row.business_id,
                    phone=row.phone,
                    login_time=_utc(row.login_time),
                ) for row in rows
            ]


def init_app(app: Any) -> None:
    """Set configuration defaults for an application instance."""
    app.config.setdefault('SQLALCHEMY_DATABASE_URI', 'sqlite:///markmorph.db')
