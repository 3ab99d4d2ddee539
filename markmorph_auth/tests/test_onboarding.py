"""Tests for :mod:`markmorph_auth.onboarding`."""

import pytest

from ..domain import UserCategory
from ..exceptions import Conflict, NotFound, ValidationError


@pytest.fixture()
def user(store):
    user, _ = store.ensure_user('subject-1', 'a@b.com', 'atempuser1')
    return user


def test_update_category(services, user):
    updated = services.onboarding.update_category(user.user_id, 'business')
    assert updated.category == UserCategory.BUSINESS
    assert updated.role == 'business'
    assert updated.onboarding_step == 2


def test_update_category_invalid(services, user):
    with pytest.raises(ValidationError):
        services.onboarding.update_category(user.user_id, 'ADMIN')


def test_update_category_missing_user(services):
    with pytest.raises(NotFound):
        services.onboarding.update_category('nobody', UserCategory.CREATOR)


def test_complete_profile(services, user):
    """Profile and business are saved, and onboarding moves on."""
    updated = services.onboarding.complete_profile(user.user_id, {
        'display_name': 'Blue Tokai',
        'bio': 'Coffee roasters',
        'business_name': 'Blue Tokai Coffee',
        'business_type': 'RESTAURANT_CAFE',
        'location': 'Mumbai',
    })
    assert updated.onboarding_step == 3
    assert updated.display_name == 'Blue Tokai'
    assert updated.has_profile
    assert updated.has_business
    assert updated.business_name == 'Blue Tokai Coffee'
    assert updated.business_id


def test_complete_profile_twice(services, user):
    """Completing the profile again updates the same records."""
    first = services.onboarding.complete_profile(user.user_id,
                                                 {'display_name': 'Asha'})
    assert first.business_name == 'Asha'
    second = services.onboarding.complete_profile(user.user_id,
                                                  {'creator_type': 'Chef'})
    assert second.business_id == first.business_id
    assert second.display_name == 'Asha'
    assert second.creator_type == 'Chef'


def test_complete_profile_defaults_business_name(services, user):
    updated = services.onboarding.complete_profile(user.user_id, {})
    assert updated.business_name == 'atempuser1'


def test_complete_profile_invalid(services, user):
    with pytest.raises(ValidationError) as caught:
        services.onboarding.complete_profile(user.user_id, {
            'bio': 'x' * 501,
            'business_type': 'SPACESHIP',
        })
    assert len(caught.value.errors) == 2


def test_claim_username(services, user, store):
    updated = services.onboarding.claim_username(user.user_id, 'asha')
    assert updated.username == 'asha'
    assert updated.onboarding_step == 4
    assert not updated.requires_onboarding


def test_claim_taken_username(services, user, store):
    store.ensure_user('subject-2', 'c@d.com', 'asha')
    with pytest.raises(Conflict):
        services.onboarding.claim_username(user.user_id, 'asha')
    assert store.get_user(user.user_id).onboarding_step == 1
