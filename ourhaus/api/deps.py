from fastapi import Depends, Request

from ourhaus.db.session import get_store
from ourhaus.db.store import DocumentStore
from ourhaus.services.home_service import HomeService
from ourhaus.services.identity_service import IdentityService
from ourhaus.services.membership_service import MembershipService
from ourhaus.services.profile_service import ProfileService


def get_identity_service(request: Request) -> IdentityService:
    """The process-wide identity provider, so auth listeners are shared."""
    return request.app.state.identity


def get_profile_service(store: DocumentStore = Depends(get_store)) -> ProfileService:
    return ProfileService(store)


def get_membership_service(store: DocumentStore = Depends(get_store)) -> MembershipService:
    return MembershipService(store)


def get_home_service(store: DocumentStore = Depends(get_store)) -> HomeService:
    return HomeService(store)
