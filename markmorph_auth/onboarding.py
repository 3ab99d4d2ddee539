"""Onboarding steps that follow signup: category, profile, username."""

from typing import Optional, Union
import logging

from .domain import ONBOARDING_COMPLETE, User, UserCategory
from .exceptions import NotFound, ValidationError
from .services.datastore import UserStore
from .usernames import UsernameAllocator

logger = logging.getLogger(__name__)

CATEGORY_CHOSEN = 2
PROFILE_COMPLETE = 3

BUSINESS_TYPES = ('RESTAURANT_CAFE', 'RETAIL_STORE', 'SALON_SPA',
                  'GYM_FITNESS', 'HOTEL_HOSTEL', 'OTHER')

MAX_LENGTHS = {
    'display_name': 100,
    'bio': 500,
    'business_name': 200,
    'creator_type': 100,
    'location': 200,
}


class Onboarding(object):
    """Moves a user through onboarding steps two to four."""

    def __init__(self, store: UserStore,
                 usernames: UsernameAllocator) -> None:
        self.store = store
        self.usernames = usernames

    def _get_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFound('User not found')
        return user

    def update_category(self, user_id: str,
                        category: Union[UserCategory, str]) -> User:
        """Set the account category; next step is the profile."""
        try:
            category = UserCategory(str(getattr(category, 'value', category))
                                    .upper())
        except ValueError as e:
            raise ValidationError('Category must be CREATOR or BUSINESS') \
                from e
        self._get_user(user_id)
        return self.store.update_user(user_id, category=category,
                                      onboarding_step=CATEGORY_CHOSEN)

    def complete_profile(self, user_id: str, data: dict) -> User:
        """
        Save profile details and the user's business space.

        Every user gets a business record, named after the business, the
        display name, or the username, in that order of preference.

        Parameters
        ----------
        user_id : str
        data : dict
            Optional ``display_name``, ``bio``, ``business_name``,
            ``business_type``, ``creator_type`` and ``location``.

        Raises
        ------
        :class:`.ValidationError`
        :class:`.NotFound`

        """
        errors = []
        for field, limit in MAX_LENGTHS.items():
            value = data.get(field)
            if value is not None and not isinstance(value, str):
                errors.append(f'{field} must be a string')
            elif value and len(value) > limit:
                errors.append(f'{field} cannot exceed {limit} characters')
        business_type = data.get('business_type') or 'OTHER'
        if business_type not in BUSINESS_TYPES:
            errors.append('business_type must be one of '
                          + ', '.join(BUSINESS_TYPES))
        if errors:
            raise ValidationError(', '.join(errors), errors)

        user = self._get_user(user_id)
        display_name: Optional[str] = data.get('display_name') \
            or user.display_name
        creator_type: Optional[str] = data.get('creator_type') \
            or user.creator_type
        self.store.upsert_profile(user_id, bio=data.get('bio'),
                                  location=data.get('location'))
        self.store.upsert_business(
            user_id,
            business_name=data.get('business_name') or display_name
            or user.username,
            business_type=business_type,
            location=data.get('location'),
        )
        return self.store.update_user(user_id, display_name=display_name,
                                      creator_type=creator_type,
                                      onboarding_step=PROFILE_COMPLETE)

    def claim_username(self, user_id: str, username: str) -> User:
        """Claim a username; this finishes onboarding."""
        self.usernames.claim_username(user_id, username)
        logger.debug('User %s finished onboarding', user_id)
        return self.store.update_user(user_id,
                                      onboarding_step=ONBOARDING_COMPLETE)
