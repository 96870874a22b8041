"""
Authorization Resolver - decides what a verified identity may do.

Every privileged surface calls authorize() with its required role instead
of checking roles inline. The comparison itself is a RolePolicy, exact
match by default; a richer policy (hierarchies, per-resource grants) is a
different callable passed to the resolver.
"""

import logging
import uuid
from typing import Callable, Optional

from sqlalchemy.orm import Session

from authcore.core.errors import Forbidden, Unauthenticated
from authcore.models.user import Role, User


logger = logging.getLogger("authcore.services.authorization")

RolePolicy = Callable[[User, Role], bool]


def exact_match(user: User, required_role: Role) -> bool:
    """The user's role must be exactly the required role."""
    return user.has_role(required_role)


class AuthorizationResolver:
    """
    Resolves (identity, required role) to Authorized / Forbidden / Unauthenticated.

    Example:
        user = AuthorizationResolver(db).authorize(user_id, Role.ADMIN)
    """

    def __init__(self, db: Session, policy: RolePolicy = exact_match):
        self.db = db
        self.policy = policy

    def load_user(self, user_id: uuid.UUID) -> User:
        """
        Load the user behind a verified session.

        Raises:
            Unauthenticated: If the user record is missing (data inconsistency)
            Forbidden: If the account is deactivated
        """
        user = self.db.get(User, user_id)

        if user is None:
            # A valid session for a user that does not exist is a trust
            # violation, not a downgrade to anonymous.
            logger.error(f"Valid session for missing user {user_id}")
            raise Unauthenticated()

        if not user.is_active:
            logger.info(f"Refused inactive user {user_id}")
            raise Forbidden("Account is inactive")

        return user

    def authorize(self, user_id: uuid.UUID, required_role: Optional[Role] = None) -> User:
        """
        Authorize a verified identity for a surface.

        Args:
            user_id: Identity returned by the session verifier
            required_role: Role the surface requires, or None for any signed-in user

        Returns:
            The authorized User

        Raises:
            Unauthenticated: If the identity has no user record
            Forbidden: If the account is inactive or the role does not satisfy the policy
        """
        user = self.load_user(user_id)

        if required_role is not None and not self.policy(user, required_role):
            logger.warning(
                f"User {user_id} with role '{user.role}' denied surface requiring '{required_role.value}'"
            )
            raise Forbidden()

        return user
