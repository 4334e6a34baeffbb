from app.core.schemas import PrincipalRecord


class CurrentPrincipal(PrincipalRecord):
    """Authenticated caller resolved from the identity provider's access token."""
